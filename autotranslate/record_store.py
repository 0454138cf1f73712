"""Format registry and the read/write entry points used by the translation core."""
import logging
from typing import Dict, List, Optional, Sequence

from autotranslate.csv_format import CsvFormat
from autotranslate.errors import ConfigError, OutputWriteError
from autotranslate.javascript_format import JavaScriptConstFormat
from autotranslate.properties_format import JavaPropertiesFormat
from autotranslate.record_format import RecordFormat
from autotranslate.records import SourceRecord, StringRecord, TargetRecord

logger = logging.getLogger("autotranslate")

DEFAULT_FORMAT = 'csv'

FORMATS: Dict[str, RecordFormat] = {
    handler.name: handler
    for handler in (JavaPropertiesFormat(), JavaScriptConstFormat(), CsvFormat())
}


def get_supported_formats() -> List[str]:
    return list(FORMATS.keys())


def detect_format(file_path: str, explicit_format: Optional[str] = None) -> str:
    """
    Decide which format a file uses.

    A known explicit format always wins; otherwise the file extension decides,
    falling back to CSV.
    """
    if explicit_format and explicit_format in FORMATS:
        return explicit_format

    for name, handler in FORMATS.items():
        if handler.can_parse(file_path):
            return name

    return DEFAULT_FORMAT


def get_format(file_path: str, explicit_format: Optional[str] = None) -> RecordFormat:
    return FORMATS[detect_format(file_path, explicit_format)]


def validate_format_name(format_name: Optional[str], context: str) -> None:
    if format_name is not None and format_name not in FORMATS:
        raise ConfigError(
            f"Unsupported format '{format_name}' for {context}. "
            f"Supported formats: {', '.join(get_supported_formats())}"
        )


def read_source(file_path: str, format_name: Optional[str] = None) -> List[SourceRecord]:
    """Read source records; raises SourceReadError if the file is missing or malformed."""
    return get_format(file_path, format_name).read_source(file_path)


def read_target(file_path: str, format_name: Optional[str] = None) -> List[TargetRecord]:
    """Read target records; a missing file yields an empty list."""
    return get_format(file_path, format_name).read_target(file_path)


def write_target(file_path: str, records: Sequence[TargetRecord], format_name: Optional[str] = None) -> None:
    get_format(file_path, format_name).write_target(file_path, records)


def write_source(file_path: str, records: Sequence[SourceRecord], format_name: Optional[str] = None) -> None:
    get_format(file_path, format_name).write_source(file_path, records)


def write_output(file_path: str, records: Sequence[StringRecord], format_name: Optional[str] = None) -> None:
    """
    Write a secondary output file.

    Raises:
        OutputWriteError: If the file cannot be rendered or written.
    """
    try:
        get_format(file_path, format_name).write_output(file_path, records)
    except (OSError, ValueError) as e:
        raise OutputWriteError(f"Failed to write output file {file_path}: {e}", file_path, e) from e
