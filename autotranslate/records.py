import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List

logger = logging.getLogger("autotranslate")


@dataclass(frozen=True)
class SourceRecord:
    key: str
    text: str
    description: str
    # Calculated from text and description on every read, never stored.
    hash: str


@dataclass(frozen=True)
class TargetRecord:
    key: str
    text: str
    # Hash of the source text+description that this translation was made from.
    hash: str


@dataclass(frozen=True)
class TranslationRequest:
    key: str
    text: str
    description: str


@dataclass(frozen=True)
class StringRecord:
    """A record as rendered into a secondary output file."""
    key: str
    text: str
    description: str = ''


def build_source_map(records: Iterable[SourceRecord]) -> Dict[str, SourceRecord]:
    """
    Index source records by key, keeping file order.

    A duplicated key keeps its last occurrence and is reported as a warning.
    """
    source_map: Dict[str, SourceRecord] = {}
    for record in records:
        if record.key in source_map:
            logger.warning("Duplicate source key '%s'; the last occurrence wins.", record.key)
        source_map[record.key] = record
    return source_map


def sort_records(records: Iterable[TargetRecord]) -> List[TargetRecord]:
    """Sort target records by key so repeated runs produce identical files."""
    return sorted(records, key=lambda record: record.key)
