"""Voice and phrasing detection used to keep derived content in the speaker's style."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence

from studio.extraction.text_stats import STOPWORDS, tokenize
from studio.ingestion.models import Segment
from studio.ingestion.parsers import split_sentences, strip_fillers
from studio.synthesis.models import StyleProfile

_PRONOUNS: dict[str, frozenset[str]] = {
    "first": frozenset({"i", "me", "my", "mine", "myself", "i'm", "i've", "i'd", "i'll"}),
    "second": frozenset({"you", "your", "yours", "yourself", "you're", "you've", "you'll", "you'd"}),
    "plural": frozenset({"we", "us", "our", "ours", "ourselves", "we're", "we've", "we'll", "we'd"}),
}
_PHRASE_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'’-]*")


def _ngrams(words: list[str], n: int) -> list[tuple[str, ...]]:
    return [tuple(words[i : i + n]) for i in range(len(words) - n + 1)]


def detect_style(segments: Sequence[Segment], max_phrases: int = 5) -> StyleProfile:
    """Build a :class:`StyleProfile` from the segment bodies.

    The dominant person is the pronoun family used most often (``neutral`` when
    none occur).  Characteristic phrases are trigrams, then bigrams, repeated at
    least twice that are not made only of stopwords.
    """
    bodies = [strip_fillers(s.body) for s in segments]
    tokens = [t for body in bodies for t in tokenize(body)]

    counts = {person: sum(1 for t in tokens if t in words) for person, words in _PRONOUNS.items()}
    person = "neutral"
    if any(counts.values()):
        # ties resolve in first/second/plural order
        person = max(counts, key=lambda p: (counts[p], -list(_PRONOUNS).index(p)))

    phrase_counts: Counter[tuple[str, ...]] = Counter()
    first_seen: dict[tuple[str, ...], int] = {}
    position = 0
    for body in bodies:
        for sentence in split_sentences(body):
            words = [w.lower() for w in _PHRASE_WORD_RE.findall(sentence)]
            for n in (3, 2):
                for gram in _ngrams(words, n):
                    if all(w in STOPWORDS for w in gram):
                        continue
                    phrase_counts[gram] += 1
                    first_seen.setdefault(gram, position)
                    position += 1

    repeated = [g for g, c in phrase_counts.items() if c >= 2]
    repeated.sort(key=lambda g: (-phrase_counts[g], -len(g), first_seen[g]))
    phrases: list[str] = []
    for gram in repeated:
        phrase = " ".join(gram)
        if any(phrase in kept for kept in phrases):
            continue
        phrases.append(phrase)
        if len(phrases) == max_phrases:
            break

    sentences = [s for body in bodies for s in split_sentences(body)]
    avg = sum(len(s.split()) for s in sentences) / len(sentences) if sentences else 0.0
    return StyleProfile(person=person, phrases=tuple(phrases), avg_sentence_words=avg)
