"""Per-language pipeline: read the target file, reconcile, translate and merge."""
import asyncio
import os
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Sequence

from autotranslate.app_config import OutputConfig, TargetConfig
from autotranslate.batch_driver import TranslationBackend, translate_candidates
from autotranslate.logging_config import get_language_logger
from autotranslate.reconciler import reconcile
from autotranslate.record_store import read_target
from autotranslate.records import SourceRecord, StringRecord, TargetRecord, sort_records

BackendFactory = Callable[[str, TargetConfig], TranslationBackend]


@dataclass(frozen=True)
class PlannedOutput:
    output: OutputConfig
    records: Sequence[StringRecord]


@dataclass
class TargetResult:
    target: TargetConfig
    updated_records: List[TargetRecord]
    has_changes: bool
    removed_keys: List[str] = field(default_factory=list)
    translated_count: int = 0
    outputs: List[PlannedOutput] = field(default_factory=list)


def plan_outputs(
        outputs: Sequence[OutputConfig],
        records: Sequence[StringRecord],
        regenerate: bool
) -> List[PlannedOutput]:
    """
    Decide which secondary output files to write.

    All outputs are written when ``regenerate`` is set; otherwise only outputs
    whose file does not exist yet are backfilled.
    """
    return [
        PlannedOutput(output=output, records=records)
        for output in outputs
        if regenerate or not os.path.exists(output.file)
    ]


def target_output_records(records: Sequence[TargetRecord]) -> List[StringRecord]:
    return [StringRecord(key=record.key, text=record.text) for record in records]


async def process_target(
        source_language: str,
        target: TargetConfig,
        source_map: Mapping[str, SourceRecord],
        translator_factory: BackendFactory,
        batch_size: int,
        fallback_scope: str = 'chunk',
        show_progress: bool = True
) -> TargetResult:
    """
    Compute the new content of one target file without writing anything.

    Args:
        source_language: Name of the source language.
        target: The target language configuration.
        source_map: Source records by key, shared read-only between languages.
        translator_factory: Builds the backend for this language. It is only
            called when something needs translating.
        batch_size: Maximum number of strings per batch call.
        fallback_scope: Passed to translate_candidates.
        show_progress: Whether to show a progress bar while translating.

    Returns:
        TargetResult: The merged records sorted by key, whether they differ from
        the file, and the secondary outputs that should be written.

    Raises:
        TargetReadError: If the existing target file is malformed.
        ConfigError: If the translator cannot be built.
        TranslationError: If translating fails even after the individual fallback.
    """
    log = get_language_logger(target.language)

    existing_records = await asyncio.to_thread(read_target, target.file, target.format)
    reconciliation = reconcile(source_map, existing_records)

    for key in reconciliation.removed_keys:
        log.info("Removed key '%s' (no longer in source)", key)

    if not reconciliation.has_changes:
        log.info("No changes needed for %s", target.file)
        updated_records = sort_records(reconciliation.preserved)
        return TargetResult(
            target=target,
            updated_records=updated_records,
            has_changes=False,
            outputs=plan_outputs(target.outputs, target_output_records(updated_records), regenerate=False),
        )

    translated: List[TargetRecord] = []
    if reconciliation.candidates:
        log.info("Translating %d string(s) into %s", len(reconciliation.candidates), target.language)
        translator = translator_factory(source_language, target)
        translated = await translate_candidates(
            reconciliation.candidates,
            translator,
            batch_size,
            fallback_scope=fallback_scope,
            log=log,
            show_progress=show_progress,
        )

    updated_records = sort_records(reconciliation.preserved + translated)
    return TargetResult(
        target=target,
        updated_records=updated_records,
        has_changes=True,
        removed_keys=reconciliation.removed_keys,
        translated_count=len(translated),
        outputs=plan_outputs(target.outputs, target_output_records(updated_records), regenerate=True),
    )
