"""Transform pipeline orchestration.

Corpus Reader -> Message Parser -> Thread Reconstructor -> Persona Assigner
-> Time Shifter -> Protocol Serializer.

The run is a one-shot batch job. Per-record failures are counted and
skipped; only configuration and output problems abort the run. Parsing is
fanned out over a thread pool in chunks; every chunk reports its own results
and skip counts, and the partial results are merged in submission order, so
the output does not depend on scheduling.
"""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from mail_emulator import __version__
from mail_emulator.config import Settings
from mail_emulator.corpus import CorpusReader, backfill_timestamps, parse_raw_record
from mail_emulator.exceptions import ConfigurationError, MessageParseError
from mail_emulator.models import (
    DateRange,
    GmailMessage,
    ParsedMessage,
    Persona,
    RawRecord,
    RunMetadata,
    Thread,
    TransformedMessage,
    TransformStats,
)
from mail_emulator.personas import (
    NAMED_PERSONAS,
    PersonaAssigner,
    PersonaTable,
    count_participation,
    infer_owner_address,
)
from mail_emulator.personas.catalog import SELF_PERSONA_ID
from mail_emulator.serialization import OutputWriter, to_gmail_message
from mail_emulator.threads import reconstruct_threads, thread_index
from mail_emulator.timeshift import TimeShifter
from mail_emulator.utils import collapse_whitespace, is_sent_folder, is_trash_folder, synthetic_id

logger = structlog.get_logger()


@dataclass(frozen=True)
class TransformOptions:
    """Parameters of one transform run."""

    corpus_root: Path
    owner: str
    limit: int | None = None
    owner_email: str | None = None
    test_email: str = "test.account@example.com"
    test_account_name: str = "Test Account"
    window_end: datetime | None = None
    top_k: int = 5
    generic_persona_count: int = 8
    synthetic_domain: str = "example.com"
    snippet_length: int = 200
    workers: int = 4
    chunk_size: int = 200
    page_size: int = 100

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> TransformOptions:
        """Build options from settings; ``None`` overrides fall back to the settings value.

        Raises:
            ConfigurationError: If no folder owner is configured or the limit is invalid.
        """
        options = cls(
            corpus_root=settings.corpus_root,
            owner=settings.folder_owner or "",
            limit=settings.message_limit,
            owner_email=settings.owner_email,
            test_email=settings.test_email,
            test_account_name=settings.test_account_name,
            window_end=settings.window_end,
            top_k=settings.top_k,
            generic_persona_count=settings.generic_persona_count,
            synthetic_domain=settings.synthetic_domain,
            snippet_length=settings.snippet_length,
            workers=settings.parse_workers,
            chunk_size=settings.parse_chunk_size,
            page_size=settings.default_max_results,
        )
        options = replace(options, **{k: v for k, v in overrides.items() if v is not None})
        options.validate()
        return options

    def validate(self) -> None:
        if not self.owner:
            raise ConfigurationError("A folder owner (--user) is required")
        if self.limit is not None and self.limit < 1:
            raise ConfigurationError(f"limit must be a positive integer, got {self.limit}")
        if self.workers < 1 or self.chunk_size < 1:
            raise ConfigurationError("workers and chunk size must be positive")
        if not 0 <= self.top_k <= len(NAMED_PERSONAS):
            raise ConfigurationError(f"top_k must be between 0 and {len(NAMED_PERSONAS)}")
        if self.generic_persona_count < 1:
            raise ConfigurationError("generic_persona_count must be at least 1")


@dataclass
class TransformResult:
    """Everything a run produced, before or after it is written to disk."""

    messages: list[TransformedMessage]
    wire_messages: list[GmailMessage]
    threads: list[Thread]
    personas: PersonaTable
    stats: TransformStats
    metadata: RunMetadata
    written: list[Path] = field(default_factory=list)


@dataclass
class _ParseBatch:
    messages: list[ParsedMessage]
    skipped: int = 0


def _chunked(records: Iterable[RawRecord], size: int) -> Iterator[list[RawRecord]]:
    chunk: list[RawRecord] = []
    for record in records:
        chunk.append(record)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def _parse_chunk(records: Sequence[RawRecord]) -> _ParseBatch:
    batch = _ParseBatch(messages=[])
    for record in records:
        try:
            batch.messages.append(parse_raw_record(record))
        except MessageParseError as exc:
            batch.skipped += 1
            logger.warning("corpus_record_skipped", path=exc.source_path, reason=exc.reason)
        except Exception as exc:  # noqa: BLE001
            batch.skipped += 1
            logger.warning(
                "corpus_record_skipped",
                path=str(record.source_path),
                reason="unexpected parser failure",
                error=repr(exc),
            )
    return batch


def _unique_personas(personas: Iterable[Persona]) -> list[Persona]:
    seen: dict[str, Persona] = {}
    for p in personas:
        seen.setdefault(p.persona_id, p)
    return list(seen.values())


def _labels(message: ParsedMessage, sender: Persona) -> list[str]:
    labels: set[str] = set()
    sent = sender.persona_id == SELF_PERSONA_ID or any(is_sent_folder(f) for f in message.folders)
    if sent:
        labels.add("SENT")
    if any(is_trash_folder(f) for f in message.folders):
        labels.add("TRASH")
    elif not sent or any(f.lower() == "inbox" for f in message.folders):
        labels.update({"INBOX", "CATEGORY_PERSONAL"})
    if sender.frequency_rank is not None:
        labels.add("IMPORTANT")
    return sorted(labels)


class TransformPipeline:
    """Runs the full corpus-to-fixture transform."""

    def __init__(self, options: TransformOptions) -> None:
        options.validate()
        self.options = options

    def run(self) -> TransformResult:
        """Execute the transform in memory.

        Raises:
            ConfigurationError: If the corpus root or owner folder is missing.
        """
        opts = self.options
        logger.info(
            "transform_started",
            corpus_root=str(opts.corpus_root),
            owner=opts.owner,
            limit=opts.limit,
            workers=opts.workers,
        )

        reader = CorpusReader(opts.corpus_root, opts.owner)
        parsed, skipped = self._parse_all(reader)
        skipped += reader.unreadable_count

        messages, duplicates = self._deduplicate(parsed)
        messages = backfill_timestamps(messages)
        messages.sort(key=lambda m: (m.original_timestamp, m.ordinal))

        truncated = 0
        if opts.limit is not None and len(messages) > opts.limit:
            truncated = len(messages) - opts.limit
            messages = messages[-opts.limit :]

        logger.info(
            "transform_parse_completed",
            parsed=len(parsed),
            kept=len(messages),
            skipped=skipped,
            duplicates=duplicates,
            truncated=truncated,
        )

        threads = reconstruct_threads(messages)
        thread_of = thread_index(threads)

        counts = count_participation(messages, workers=opts.workers, chunk_size=opts.chunk_size)
        owner_address = opts.owner_email or infer_owner_address(messages)
        display_names: dict[str, str] = {}
        for m in messages:
            for addr, name in m.display_names.items():
                display_names.setdefault(addr, name)

        table = PersonaAssigner(
            top_k=opts.top_k,
            generic_count=opts.generic_persona_count,
            synthetic_domain=opts.synthetic_domain,
            self_email=opts.test_email,
            self_name=opts.test_account_name,
        ).assign(counts, owner_address=owner_address, display_names=display_names)

        shifter = TimeShifter.fit(
            (m.original_timestamp for m in messages if m.original_timestamp is not None),
            opts.window_end,
        )

        transformed = [self._transform(m, thread_of, table, shifter) for m in messages]
        wire = [
            to_gmail_message(t)
            for t in sorted(transformed, key=lambda t: (-t.internal_date_ms, t.synthetic_id))
        ]

        stats = self._stats(
            transformed,
            threads=threads,
            counts=counts,
            table=table,
            skipped=skipped,
            duplicates=duplicates,
            truncated=truncated,
            flagged=sum(1 for m in messages if m.date_flagged),
        )
        metadata = RunMetadata(
            generator=f"mail-emulator {__version__}",
            user=opts.owner,
            limit=opts.limit,
            test_email=table.self_persona.synthetic_email,
            top_k=opts.top_k,
            generic_persona_count=opts.generic_persona_count,
            time_window=shifter.describe(),
            personas=table.personas,
        )

        logger.info(
            "transform_completed",
            total_transformed=stats.total_transformed,
            thread_count=stats.thread_count,
            persona_count=stats.persona_count,
            skipped_count=stats.skipped_count,
        )
        return TransformResult(
            messages=transformed,
            wire_messages=wire,
            threads=threads,
            personas=table,
            stats=stats,
            metadata=metadata,
        )

    def run_and_write(self, output_dir: Path) -> TransformResult:
        """Run the transform and persist its artifacts.

        The output directory is checked before any parsing starts so an
        unwritable target fails fast.

        Raises:
            ConfigurationError: If the corpus root or owner folder is missing.
            OutputWriteError: If the output directory cannot be written.
        """
        writer = OutputWriter(output_dir, page_size=self.options.page_size)
        writer.prepare()
        result = self.run()
        result.written = writer.write(result.wire_messages, result.stats, result.metadata)
        return result

    def _parse_all(self, reader: CorpusReader) -> tuple[list[ParsedMessage], int]:
        opts = self.options
        chunks = _chunked(reader, opts.chunk_size)
        batches: list[_ParseBatch] = []

        if opts.workers <= 1:
            batches = [_parse_chunk(chunk) for chunk in chunks]
        else:
            # Keep a bounded number of chunks in flight so raw bytes do not pile up.
            with ThreadPoolExecutor(max_workers=opts.workers) as pool:
                pending: deque[Future[_ParseBatch]] = deque()
                for chunk in chunks:
                    pending.append(pool.submit(_parse_chunk, chunk))
                    if len(pending) >= opts.workers * 2:
                        batches.append(pending.popleft().result())
                while pending:
                    batches.append(pending.popleft().result())

        parsed = [m for batch in batches for m in batch.messages]
        return parsed, sum(batch.skipped for batch in batches)

    @staticmethod
    def _deduplicate(parsed: Sequence[ParsedMessage]) -> tuple[list[ParsedMessage], int]:
        unique: dict[str, ParsedMessage] = {}
        duplicates = 0
        for m in parsed:
            existing = unique.get(m.original_message_id)
            if existing is None:
                unique[m.original_message_id] = m
                continue
            duplicates += 1
            extra = [f for f in m.folders if f not in existing.folders]
            if extra:
                unique[m.original_message_id] = existing.model_copy(
                    update={"folders": [*existing.folders, *extra]}
                )
        return list(unique.values()), duplicates

    def _transform(
        self,
        message: ParsedMessage,
        thread_of: dict[str, str],
        table: PersonaTable,
        shifter: TimeShifter,
    ) -> TransformedMessage:
        assert message.original_timestamp is not None
        sender = table.resolve(message.from_address)
        body = table.scrub(message.body_text)
        return TransformedMessage(
            synthetic_id=synthetic_id(message.original_message_id),
            thread_id=thread_of[message.original_message_id],
            from_persona=sender,
            to_personas=_unique_personas(table.resolve(a) for a in message.to_addresses),
            cc_personas=_unique_personas(table.resolve(a) for a in message.cc_addresses),
            subject=table.scrub(message.subject),
            body_full=body,
            body_snippet=collapse_whitespace(body)[: self.options.snippet_length],
            shifted_timestamp=shifter.shift(message.original_timestamp),
            internal_date_ms=shifter.shift_ms(message.original_timestamp),
            labels=_labels(message, sender),
        )

    @staticmethod
    def _stats(
        transformed: Sequence[TransformedMessage],
        *,
        threads: Sequence[Thread],
        counts: Counter[str],
        table: PersonaTable,
        skipped: int,
        duplicates: int,
        truncated: int,
        flagged: int,
    ) -> TransformStats:
        per_persona: Counter[str] = Counter()
        for address, n in counts.items():
            per_persona[table.resolve(address).persona_id] += n

        used = {
            p.persona_id
            for t in transformed
            for p in (t.from_persona, *t.to_personas, *t.cc_personas)
        }
        shifted = [t.shifted_timestamp for t in transformed]

        return TransformStats(
            total_transformed=len(transformed),
            thread_count=len(threads),
            persona_count=len(used),
            persona_frequency_table=dict(sorted(per_persona.items(), key=lambda kv: (-kv[1], kv[0]))),
            top_contacts=table.top_contacts(),
            skipped_count=skipped,
            duplicate_count=duplicates,
            truncated_count=truncated,
            flagged_date_count=flagged,
            date_range=DateRange(start=min(shifted, default=None), end=max(shifted, default=None)),
        )


def transform_corpus(options: TransformOptions, output_dir: Path) -> TransformResult:
    """Convenience wrapper: run the pipeline and write its output."""
    return TransformPipeline(options).run_and_write(output_dir)
