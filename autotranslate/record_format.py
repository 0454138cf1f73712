"""Base class for the file formats that hold source, target and output records."""
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from autotranslate.content_hash import calculate_hash
from autotranslate.errors import SourceReadError, TargetReadError
from autotranslate.records import SourceRecord, StringRecord, TargetRecord

logger = logging.getLogger("autotranslate")

# (key, text, annotation): the annotation is the description in source files
# and the stored hash in target files.
Entry = Tuple[str, str, str]


def read_text_file(file_path: str) -> str:
    with open(file_path, 'r', encoding='utf-8') as file:
        return file.read()


def write_text_file(file_path: str, content: str) -> None:
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8', newline='') as file:
        file.write(content)


class RecordFormat(ABC):
    """
    A file format that can hold string records.

    Subclasses only know how to turn file content into entries and records into
    file content. Existence checks, hashing and error wrapping live here so that
    every format honours the same read contract: a missing source is fatal, a
    missing target is an empty record set.
    """
    name: str = ''
    extensions: Tuple[str, ...] = ()

    @abstractmethod
    def parse_entries(self, content: str) -> List[Entry]:
        """
        Parse file content into entries.

        Raises:
            ValueError: If the content is malformed.
        """

    @abstractmethod
    def render(self, records: Sequence[StringRecord]) -> str:
        """Render records (key, text, description) as file content."""

    def render_target(self, records: Sequence[TargetRecord]) -> str:
        # Formats without a hash column store the hash where a description would go.
        return self.render([StringRecord(record.key, record.text, record.hash) for record in records])

    def render_source(self, records: Sequence[SourceRecord]) -> str:
        return self.render([StringRecord(record.key, record.text, record.description) for record in records])

    def can_parse(self, file_path: str) -> bool:
        return file_path.lower().endswith(self.extensions)

    def read_source(self, file_path: str) -> List[SourceRecord]:
        if not os.path.exists(file_path):
            raise SourceReadError(f"Source file not found: {file_path}", file_path)
        try:
            entries = self.parse_entries(read_text_file(file_path))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise SourceReadError(f"Failed to read source file {file_path}: {e}", file_path, e) from e

        return [
            SourceRecord(key=key, text=text, description=description, hash=calculate_hash(text, description))
            for key, text, description in entries
        ]

    def read_target(self, file_path: str) -> List[TargetRecord]:
        if not os.path.exists(file_path):
            return []
        try:
            entries = self.parse_entries(read_text_file(file_path))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise TargetReadError(f"Failed to read target file {file_path}: {e}", file_path, e) from e

        return [TargetRecord(key=key, text=text, hash=stored_hash) for key, text, stored_hash in entries]

    def write_source(self, file_path: str, records: Sequence[SourceRecord]) -> None:
        write_text_file(file_path, self.render_source(records))

    def write_target(self, file_path: str, records: Sequence[TargetRecord]) -> None:
        write_text_file(file_path, self.render_target(records))

    def write_output(self, file_path: str, records: Sequence[StringRecord]) -> None:
        write_text_file(file_path, self.render(records))
