import json
import logging
import re
from typing import List, Optional, Sequence

from autotranslate.record_format import Entry, RecordFormat
from autotranslate.records import StringRecord

logger = logging.getLogger("autotranslate")

EXPECTED_LAYOUT = (
    "Expected format:\n"
    "export const strings = {\n"
    "  // Optional comment\n"
    "  KEY_NAME: 'text value',\n"
    "  ANOTHER_KEY: \"another value\",\n"
    "};"
)

# Values longer than this are probably a pasting mistake
LONG_TEXT_WARNING_LENGTH = 1000

_KEY_VALUE_PATTERN = re.compile(r'''^(['"]?)(.+?)\1\s*:\s*(['"`])(.*?)\3\s*,?\s*$''')
_SINGLE_QUOTE_ESCAPES = re.compile(r"\\(.)")
_SINGLE_QUOTE_UNESCAPES = {'n': '\n', 'r': '\r', 't': '\t'}


def _parse_string_value(raw_text: str, quote: str, line_number: int) -> str:
    if quote == '"':
        try:
            return json.loads(f'"{raw_text}"')
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid string value on line {line_number}: {e.msg}") from e
    if quote == "'":
        return _SINGLE_QUOTE_ESCAPES.sub(
            lambda match: _SINGLE_QUOTE_UNESCAPES.get(match.group(1), match.group(1)), raw_text)
    raise ValueError(f"Template literals are not supported in translation files (line {line_number})")


def _parse_key(raw_key: str, quote: str) -> str:
    if quote == '"':
        try:
            return json.loads(f'"{raw_key}"').strip()
        except json.JSONDecodeError:
            pass
    return raw_key.strip()


def _is_structural_line(line: str) -> bool:
    return line.startswith('export') or line in ('{', '}', '};')


class JavaScriptConstFormat(RecordFormat):
    """
    An ES module exporting a single ``strings`` object literal.

    A ``//`` comment directly above an entry holds its description in source
    files and its hash in target files.
    """
    name = 'javascript-const'
    extensions = ('.js', '.mjs', '.ts')

    def parse_entries(self, content: str) -> List[Entry]:
        entries: List[Entry] = []
        seen_keys = set()
        current_comment = ''

        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()
            if not line or _is_structural_line(line):
                continue

            if line.startswith('//'):
                current_comment = line[2:].strip()
                continue

            entry = self._parse_key_value_line(line, current_comment, line_number)
            current_comment = ''
            if entry is None:
                continue

            key, text, _ = entry
            if key in seen_keys:
                raise ValueError(f'Duplicate key found: "{key}" (line {line_number})')
            seen_keys.add(key)

            if not text.strip():
                logger.warning('Empty text value for key "%s"', key)
            if len(text) > LONG_TEXT_WARNING_LENGTH:
                logger.warning('Very long text value for key "%s" (%d characters)', key, len(text))

            entries.append(entry)

        return entries

    def _parse_key_value_line(self, line: str, comment: str, line_number: int) -> Optional[Entry]:
        match = _KEY_VALUE_PATTERN.match(line)
        if not match:
            return None

        key_quote, raw_key, value_quote, raw_text = match.groups()
        try:
            text = _parse_string_value(raw_text, value_quote, line_number)
        except ValueError as e:
            raise ValueError(f"Error parsing line {line_number} {line}: {e}\n\n{EXPECTED_LAYOUT}") from e
        return _parse_key(raw_key, key_quote), text, comment

    def render(self, records: Sequence[StringRecord]) -> str:
        lines = ['export const strings = {']
        for record in records:
            if record.description and record.description.strip():
                lines.append(f"  // {' '.join(record.description.split())}")
            escaped_key = json.dumps(record.key, ensure_ascii=False)
            escaped_text = json.dumps(record.text, ensure_ascii=False)
            lines.append(f"  {escaped_key}: {escaped_text},")
        lines.append('};')
        return '\n'.join(lines) + '\n'
