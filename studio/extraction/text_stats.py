"""Deterministic text statistics shared by the extractive backends."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable

from studio.ingestion.parsers import FILLER_WORDS

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'’-]*")
_TITLE_NORMALIZE_RE = re.compile(r"[^\w\s]")

STOPWORDS: frozenset[str] = frozenset(
    """
    a about above after again against all also am an and any are aren't as at be because been
    before being below between both but by can can't cannot could couldn't did didn't do does
    doesn't doing don't down during each even ever every few for from further get gets getting
    go going gonna got had hadn't has hasn't have haven't having he he'd he'll he's her here
    here's hers herself him himself his how how's i i'd i'll i'm i've if in into is isn't it
    it's its itself just know let let's like lot lots me more most much mustn't my myself no nor
    not now of off oh ok okay on once one only or other ought our ours ourselves out over own
    pretty quite really right said same say says see shan't she she'd she'll she's should
    shouldn't so some something such than that that's the their theirs them themselves then
    there there's these they they'd they'll they're they've thing things think this those
    through to too under until up us very wanna was wasn't way we we'd we'll we're we've well
    were weren't what what's when when's where where's which while who who's whom why why's
    will with won't would wouldn't yeah yes yet you you'd you'll you're you've your yours
    yourself yourselves
    """.split()
)


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens of *text*."""
    return [w.lower().replace("’", "'") for w in _WORD_RE.findall(text)]


def content_words(text: str) -> list[str]:
    """Tokens that carry meaning: not stopwords, not filler, at least three letters."""
    return [
        w
        for w in tokenize(text)
        if len(w) > 2 and w not in STOPWORDS and w not in FILLER_WORDS
    ]


def corpus_frequencies(texts: Iterable[str]) -> Counter[str]:
    """Content-word counts across *texts*."""
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(content_words(text))
    return counts


def score_sentence(sentence: str, frequencies: Counter[str]) -> float:
    """Mean corpus frequency of the sentence's distinct content words, damped by length."""
    words = set(content_words(sentence))
    if not words:
        return 0.0
    total = sum(frequencies.get(w, 0) for w in words)
    return total / math.sqrt(len(words)) if len(words) > 1 else total / 2.0


def top_keywords(text: str, frequencies: Counter[str], limit: int = 3) -> list[str]:
    """The *limit* strongest keywords of *text*, ties broken by first occurrence."""
    local = Counter(content_words(text))
    order = {w: i for i, w in reversed(list(enumerate(content_words(text))))}
    ranked = sorted(local, key=lambda w: (-(local[w] * (frequencies.get(w, 0) or 1)), order[w]))
    return ranked[:limit]


def title_from_keywords(keywords: list[str]) -> str:
    return " ".join(w.capitalize() for w in keywords)


def normalize_title(title: str) -> str:
    """Key used to detect duplicate insights: case-folded, punctuation and extra spaces removed."""
    return " ".join(_TITLE_NORMALIZE_RE.sub(" ", title.casefold()).split())
