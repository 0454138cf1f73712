"""
Runs the per-language pipelines for one configuration and writes their results.

Source records are read once and shared read-only between the languages. Every
language is computed concurrently; files are written only after all of them
have finished, and not at all when any of them failed.
"""
import asyncio
import logging
import os
import types
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from autotranslate.app_config import AppConfig, OutputConfig
from autotranslate.errors import OutputWriteError, TranslationFailedError
from autotranslate.logging_config import get_language_logger
from autotranslate.pipeline import BackendFactory, PlannedOutput, TargetResult, process_target
from autotranslate.reconciler import refresh_hashes
from autotranslate.record_store import read_source, read_target, write_output, write_target
from autotranslate.records import SourceRecord, StringRecord, build_source_map, sort_records
from autotranslate.translator import build_translator_factory

logger = logging.getLogger("autotranslate")


@dataclass
class RunSummary:
    results: List[TargetResult] = field(default_factory=list)
    written_files: List[str] = field(default_factory=list)
    skipped_outputs: List[str] = field(default_factory=list)

    @property
    def translated_count(self) -> int:
        return sum(result.translated_count for result in self.results)

    @property
    def changed_languages(self) -> List[str]:
        return [result.target.language for result in self.results if result.has_changes]


@dataclass
class HashUpdate:
    file: str
    updated_count: int
    removed_count: int

    @property
    def has_changes(self) -> bool:
        return self.updated_count > 0 or self.removed_count > 0


def load_source_map(config: AppConfig) -> Mapping[str, SourceRecord]:
    """Read the source file once and return its records by key as a read-only mapping."""
    logger.info("Reading source file: %s", config.source.file)
    source_records = read_source(config.source.file, config.source.format)
    logger.info("Found %d source strings", len(source_records))
    return types.MappingProxyType(build_source_map(source_records))


def plan_source_outputs(config: AppConfig, source_map: Mapping[str, SourceRecord]) -> List[PlannedOutput]:
    """Source outputs are regenerated when they are missing or older than the source file."""
    source_mtime = os.path.getmtime(config.source.file)
    records = [
        StringRecord(key=record.key, text=record.text, description=record.description)
        for record in source_map.values()
    ]
    return [
        PlannedOutput(output=output, records=records)
        for output in config.source.outputs
        if not os.path.exists(output.file) or os.path.getmtime(output.file) < source_mtime
    ]


def _write_outputs(planned: Sequence[PlannedOutput], summary: RunSummary) -> None:
    for planned_output in planned:
        output: OutputConfig = planned_output.output
        try:
            write_output(output.file, planned_output.records, output.format)
        except OutputWriteError as e:
            logger.error("%s", e)
            summary.skipped_outputs.append(output.file)
            continue
        logger.info("Wrote output file %s", output.file)
        summary.written_files.append(output.file)


def _raise_for_failures(config: AppConfig, outcomes: Sequence) -> None:
    failures: Dict[str, BaseException] = {}
    for target, outcome in zip(config.targets, outcomes):
        if isinstance(outcome, BaseException):
            get_language_logger(target.language).error("Translation failed: %s", outcome)
            failures[target.language] = outcome
    if failures:
        raise TranslationFailedError(failures)


async def autotranslate(
        config: AppConfig,
        translator_factory: Optional[BackendFactory] = None,
        fallback_scope: str = 'chunk',
        show_progress: bool = True
) -> RunSummary:
    """
    Bring every target file in line with the source file.

    Args:
        config: The validated configuration.
        translator_factory: Builds the translation backend for a language.
            Defaults to OpenAI translators sharing one client, semaphore and
            rate limiter.
        fallback_scope: See translate_candidates.
        show_progress: Whether to show progress bars.

    Returns:
        RunSummary: Per-language results and the files that were written.

    Raises:
        SourceReadError: If the source file is missing or malformed.
        TranslationFailedError: If any language failed. No file is written.
    """
    logger.debug("Source file: %s", config.source.file)
    logger.debug("Target languages: %s",
                 ', '.join(f"{target.language} ({target.file})" for target in config.targets))

    source_map = load_source_map(config)
    if translator_factory is None:
        translator_factory = build_translator_factory(config)

    outcomes = await asyncio.gather(
        *(
            process_target(
                config.source.language,
                target,
                source_map,
                translator_factory,
                config.batch_size,
                fallback_scope=fallback_scope,
                show_progress=show_progress,
            )
            for target in config.targets
        ),
        return_exceptions=True
    )
    _raise_for_failures(config, outcomes)

    summary = RunSummary(results=list(outcomes))
    for result in summary.results:
        if result.has_changes:
            write_target(result.target.file, result.updated_records, result.target.format)
            get_language_logger(result.target.language).info(
                "Wrote %s (%d translated, %d removed)", result.target.file, result.translated_count,
                len(result.removed_keys))
            summary.written_files.append(result.target.file)

    for result in summary.results:
        _write_outputs(result.outputs, summary)
    _write_outputs(plan_source_outputs(config, source_map), summary)

    logger.info("Autotranslate completed successfully")
    return summary


def update_hashes(config: AppConfig) -> List[HashUpdate]:
    """
    Accept the current translations as up to date without translating anything.

    Orphaned keys are dropped and every remaining record takes the current
    source hash. A target file is rewritten only when something changed.
    """
    source_map = load_source_map(config)

    updates: List[HashUpdate] = []
    for target in config.targets:
        log = get_language_logger(target.language)
        log.debug("Updating hashes in %s", target.file)

        existing_records = read_target(target.file, target.format)
        updated_records, updated_count, removed_keys = refresh_hashes(source_map, existing_records)
        for key in removed_keys:
            log.debug("Removing obsolete key: %s", key)

        update = HashUpdate(file=target.file, updated_count=updated_count, removed_count=len(removed_keys))
        if update.has_changes:
            write_target(target.file, sort_records(updated_records), target.format)
            log.info("Updated %s: %d updated, %d removed", target.file, update.updated_count,
                     update.removed_count)
        else:
            log.info("No changes needed for %s", target.file)
        updates.append(update)

    return updates
