"""Pipeline orchestrator: segment -> extract -> (chapters | blogs | social) -> assemble -> save."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from anthropic import Anthropic

from studio.errors import EmptyInputError, PartialContentError, PipelineCancelledError, PipelineFailedError
from studio.extraction.extractor import Extractor
from studio.extraction.models import Diagnostic
from studio.ingestion.models import Segment, Transcript
from studio.ingestion.segmenter import Segmenter
from studio.pipeline.models import PipelineRun, PipelineState, ProcessedResult
from studio.pipeline.stages import StageOutcome, StageToken, run_stage
from studio.pipeline_config import PipelineConfig
from studio.repurposing.repurposer import Repurposer
from studio.storage.repository import Record, TranscriptStore
from studio.synthesis.style import detect_style
from studio.synthesis.synthesizer import Synthesizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Submission:
    """A persisted record together with the run that produced it."""

    record: Record
    run: PipelineRun

    @property
    def id(self) -> str:
        return str(self.record["id"])


class Orchestrator:
    """Run the content pipeline for one transcript at a time.

    Segmenting and extracting are required: if either yields nothing the run
    ends ``failed``.  Chapters, blog posts and social posts run concurrently
    afterwards and only ever shorten their own section.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        store: TranscriptStore | None = None,
        *,
        client: Anthropic | None = None,
        segmenter: Segmenter | None = None,
        extractor: Extractor | None = None,
        synthesizer: Synthesizer | None = None,
        repurposer: Repurposer | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.store = store
        self.segmenter = segmenter or Segmenter(self.config.max_segment_chars)
        self.extractor = extractor or Extractor(self.config, client)
        self.synthesizer = synthesizer or Synthesizer(self.config, client)
        self.repurposer = repurposer or Repurposer(self.config, client)

    def submit(
        self,
        transcript_text: str,
        file_name: str,
        cancel: threading.Event | None = None,
    ) -> Submission:
        """Process a transcript and persist the result.

        Raises:
            EmptyInputError: Before any work if the transcript is blank.
            PipelineFailedError: If a required stage produced no output.
            PipelineCancelledError: If *cancel* was set during the run.
            PersistenceError: If the store rejects the record.
        """
        if not transcript_text or not transcript_text.strip():
            raise EmptyInputError()
        if self.store is None:
            raise RuntimeError("Orchestrator.submit requires a TranscriptStore")

        transcript = Transcript(text=transcript_text, file_name=file_name)
        run = self.run(transcript, cancel)
        if run.state is PipelineState.FAILED:
            raise run.error or PipelineFailedError(f"Pipeline failed for {file_name}", run.diagnostics)
        if run.result is None:
            raise PipelineFailedError(f"Pipeline produced no result for {file_name}", run.diagnostics)

        record = self.store.save(
            {
                "file_name": transcript.file_name,
                "original_transcript": transcript.text,
                "processed_data": run.result.to_payload(),
                "created_at": transcript.received_at,
            }
        )
        logger.info("Transcript %s processed as %s", file_name, record.get("id"))
        return Submission(record=record, run=run)

    def run(self, transcript: Transcript, cancel: threading.Event | None = None) -> PipelineRun:
        """Run every stage for *transcript* and return the finished run.

        The run ends ``completed`` or ``failed``; nothing is persisted here.

        Raises:
            EmptyInputError: If the transcript has no text after normalization.
        """
        run = PipelineRun(transcript=transcript)
        config = self.config

        # 1. Segment
        run.advance(PipelineState.SEGMENTING)
        seg_outcome = run_stage(
            "segmenting",
            lambda token: self.segmenter.segment(transcript.text, should_stop=token),
            timeout=config.required_stage_timeout_seconds,
            retries=config.stage_retries,
            caller_cancel=cancel,
            fatal=(EmptyInputError,),
        )
        if self._cancelled(run, seg_outcome, cancel):
            return run
        if not seg_outcome.ok or not seg_outcome.value:
            return self._fail(run, "segmenting", "segments", seg_outcome)
        run.segments = tuple(seg_outcome.value)

        # 2. Extract
        run.advance(PipelineState.EXTRACTING)
        ext_outcome = run_stage(
            "extracting",
            lambda token: self.extractor.extract(run.segments, should_stop=token),
            timeout=config.required_stage_timeout_seconds,
            retries=config.stage_retries,
            caller_cancel=cancel,
        )
        if self._cancelled(run, ext_outcome, cancel):
            return run
        if ext_outcome.ok and ext_outcome.value is not None:
            run.diagnostics.extend(ext_outcome.value.diagnostics)
        if not ext_outcome.ok or ext_outcome.value is None or not ext_outcome.value.insights:
            return self._fail(run, "extracting", "insights", ext_outcome)
        insights = ext_outcome.value.insights

        # 3. Chapters, blogs and social posts read the same frozen snapshot concurrently.
        run.advance(PipelineState.SYNTHESIZING)
        segments = run.segments
        style = detect_style(segments)
        work: dict[str, Any] = {
            "chapters": lambda token: self.synthesizer.synthesize_chapters(segments, insights, style, token),
            "blogs": lambda token: self.synthesizer.synthesize_blogs(segments, insights, style, token),
            "social": lambda token: self.repurposer.repurpose(insights, style, token),
        }
        with ThreadPoolExecutor(max_workers=len(work), thread_name_prefix="sections") as pool:
            futures = {
                section: pool.submit(
                    run_stage,
                    section,
                    fn,
                    timeout=config.stage_timeout_seconds,
                    retries=config.stage_retries,
                    caller_cancel=cancel,
                )
                for section, fn in work.items()
            }
            outcomes: dict[str, StageOutcome[Any]] = {s: f.result() for s, f in futures.items()}

        if cancel is not None and cancel.is_set():
            return self._cancel(run, "Submission cancelled while generating content")

        sections: dict[str, tuple[Any, ...]] = {}
        for section, outcome in outcomes.items():
            if not outcome.ok:
                error = outcome.error or PartialContentError(f"{section} stage returned no output")
                run.diagnostics.append(Diagnostic("synthesizing", section, type(error).__name__, str(error)))
                sections[section] = ()
                continue
            value = outcome.value
            items = value.posts if section == "social" else value.documents
            run.diagnostics.extend(value.diagnostics)
            sections[section] = tuple(items)

        # 4. Assemble
        run.advance(PipelineState.ASSEMBLING)
        run.result = ProcessedResult(
            insights=self._traceable(run, "insights", insights, segments),
            chapters=self._traceable(run, "chapters", sections["chapters"], segments),
            blogs=self._traceable(run, "blogs", sections["blogs"], segments),
            social=self._traceable(run, "social", sections["social"], segments),
        )
        run.advance(PipelineState.COMPLETED)
        logger.info("Pipeline completed for %s: %s", transcript.file_name, run.summary()["sections"])
        return run

    @staticmethod
    def _traceable(
        run: PipelineRun,
        section: str,
        items: tuple[Any, ...],
        segments: tuple[Segment, ...],
    ) -> tuple[Any, ...]:
        """Keep only items whose segment references all exist in this transcript."""
        valid = {s.index for s in segments}
        kept: list[Any] = []
        for item in items:
            refs = set(item.segment_indices)
            if refs and refs <= valid:
                kept.append(item)
                continue
            run.diagnostics.append(
                Diagnostic(
                    "assembling",
                    section,
                    PartialContentError.__name__,
                    f"Dropped item without a valid segment reference: {sorted(refs)}",
                )
            )
        return tuple(kept)

    def _cancelled(self, run: PipelineRun, outcome: StageOutcome[Any], cancel: threading.Event | None) -> bool:
        if isinstance(outcome.error, PipelineCancelledError) or (cancel is not None and cancel.is_set()):
            self._cancel(run, f"Submission cancelled during {outcome.name}")
            return True
        return False

    @staticmethod
    def _cancel(run: PipelineRun, message: str) -> PipelineRun:
        logger.info("%s (%s)", message, run.transcript.file_name)
        run.result = None
        run.error = PipelineCancelledError(message)
        run.advance(PipelineState.FAILED)
        return run

    @staticmethod
    def _fail(run: PipelineRun, stage: str, section: str, outcome: StageOutcome[Any]) -> PipelineRun:
        if outcome.error is not None:
            run.diagnostics.append(Diagnostic(stage, section, type(outcome.error).__name__, str(outcome.error)))
            message = f"{stage.capitalize()} failed: {outcome.error}"
        else:
            message = f"{stage.capitalize()} produced no {section}"
        logger.error("Pipeline failed for %s: %s", run.transcript.file_name, message)
        run.error = PipelineFailedError(message, run.diagnostics, outcome.error)
        run.advance(PipelineState.FAILED)
        return run
