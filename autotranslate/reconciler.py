from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

from autotranslate.content_hash import needs_translation
from autotranslate.records import SourceRecord, TargetRecord


@dataclass(frozen=True)
class TranslationCandidate:
    key: str
    source_record: SourceRecord


@dataclass
class ReconciliationResult:
    preserved: List[TargetRecord] = field(default_factory=list)
    candidates: List[TranslationCandidate] = field(default_factory=list)
    removed_keys: List[str] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed_keys)

    @property
    def has_changes(self) -> bool:
        return bool(self.candidates) or bool(self.removed_keys)


def reconcile(
        source_map: Mapping[str, SourceRecord],
        existing_records: Sequence[TargetRecord]
) -> ReconciliationResult:
    """
    Decide which existing translations can be kept and which keys need translating.

    A translation is current only while its stored hash matches the hash of the
    source text and description it belongs to. Nothing here reads or writes files.

    Args:
        source_map: The source records by key; this is the authoritative key set.
        existing_records: The records currently in the target file, in file order.

    Returns:
        ReconciliationResult: Records preserved as they are, keys to translate
        (new or stale, in source order) and keys dropped because the source no
        longer has them.
    """
    # Last occurrence wins for duplicated keys
    existing_map: Dict[str, TargetRecord] = {record.key: record for record in existing_records}

    removed_keys: List[str] = []
    surviving: List[TargetRecord] = []
    for record in existing_records:
        if record.key in source_map:
            surviving.append(record)
        elif record.key not in removed_keys:
            removed_keys.append(record.key)

    candidates = [
        TranslationCandidate(key, source_record)
        for key, source_record in source_map.items()
        if key not in existing_map
        or needs_translation(source_record.text, source_record.description, existing_map[key].hash)
    ]

    preserved: List[TargetRecord] = []
    preserved_keys = set()
    for record in surviving:
        # A duplicated key is only carried forward once, using its last occurrence
        current = existing_map[record.key]
        source_record = source_map[record.key]
        if record.key in preserved_keys or needs_translation(source_record.text, source_record.description,
                                                             current.hash):
            continue
        preserved.append(current)
        preserved_keys.add(record.key)

    return ReconciliationResult(preserved=preserved, candidates=candidates, removed_keys=removed_keys)


def refresh_hashes(
        source_map: Mapping[str, SourceRecord],
        existing_records: Sequence[TargetRecord]
) -> Tuple[List[TargetRecord], int, List[str]]:
    """
    Mark every existing translation as current without translating anything.

    Orphaned keys are dropped and every surviving record takes the current source
    hash, which adopts hand-edited translations as up to date.

    Returns:
        A tuple of the updated records, the number of records whose hash changed
        and the keys that were removed.
    """
    result = reconcile(source_map, existing_records)
    existing_map = {record.key: record for record in existing_records}

    updated: List[TargetRecord] = list(result.preserved)
    updated_count = 0
    for candidate in result.candidates:
        existing = existing_map.get(candidate.key)
        if existing is None:
            continue
        updated.append(TargetRecord(key=existing.key, text=existing.text, hash=candidate.source_record.hash))
        updated_count += 1

    return updated, updated_count, result.removed_keys
