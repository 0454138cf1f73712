import re
from typing import List, Sequence

from autotranslate.record_format import Entry, RecordFormat
from autotranslate.records import StringRecord

ENCODING_HEADER = '# encoding: UTF-8'

_UNESCAPES = {'n': '\n', 'r': '\r', 't': '\t', 'f': '\f'}
_ESCAPE_PATTERN = re.compile(r'\\(u[0-9a-fA-F]{4}|.)', re.DOTALL)


def _has_unescaped_trailing_backslash(s: str) -> bool:
    """Check if a string ends with an odd number of backslashes."""
    if not s.endswith('\\'):
        return False
    count = len(s) - len(s.rstrip('\\'))
    # An odd number of trailing backslashes indicates a line continuation
    return count % 2 == 1


def _find_separator(line: str) -> int:
    """Return the index of the first unescaped '=' or ':' in the line, or -1."""
    for j, char in enumerate(line):
        if char in (':', '='):
            backslash_count = 0
            k = j - 1
            while k >= 0 and line[k] == '\\':
                backslash_count += 1
                k -= 1
            if backslash_count % 2 == 0:
                return j
    return -1


def _unescape(text: str) -> str:
    def replace_escape(match):
        escaped = match.group(1)
        if len(escaped) == 5:
            return chr(int(escaped[1:], 16))
        return _UNESCAPES.get(escaped, escaped)

    return _ESCAPE_PATTERN.sub(replace_escape, text)


def unescape_key(key: str) -> str:
    return _unescape(key)


def unescape_value(value: str) -> str:
    # Values are written for MessageFormat, where a literal quote is doubled.
    return _unescape(value).replace("''", "'")


def escape_key(key: str) -> str:
    """Escape the characters that would end or split a key: backslash, whitespace, = : # !"""
    return (key.replace('\\', '\\\\')
            .replace(' ', '\\ ')
            .replace('\t', '\\t')
            .replace('\f', '\\f')
            .replace('=', '\\=')
            .replace(':', '\\:')
            .replace('#', '\\#')
            .replace('!', '\\!'))


def escape_value(value: str) -> str:
    escaped = (value.replace('\\', '\\\\')
               .replace('\n', '\\n')
               .replace('\r', '\\r')
               .replace('\t', '\\t')
               .replace('\f', '\\f')
               .replace("'", "''"))
    # Readers skip whitespace after the separator, so leading spaces must be escaped
    unindented = escaped.lstrip(' ')
    return '\\ ' * (len(escaped) - len(unindented)) + unindented


def _comment_text(description: str) -> str:
    return ' '.join(description.split())


class JavaPropertiesFormat(RecordFormat):
    """
    Java .properties files.

    The comment line directly above an entry carries its description in source
    files and its hash in target files. A blank line clears a pending comment.
    """
    name = 'java-properties'
    extensions = ('.properties',)

    def parse_entries(self, content: str) -> List[Entry]:
        lines = content.splitlines()
        entries: List[Entry] = []
        current_comment = ''
        i = 0
        while i < len(lines):
            line = lines[i]
            stripped_line = line.strip()

            if not stripped_line:
                current_comment = ''
                i += 1
                continue

            if i == 0 and stripped_line.startswith('# encoding:'):
                i += 1
                continue

            if stripped_line.startswith(('#', '!')):
                current_comment = stripped_line[1:].strip()
                i += 1
                continue

            line = line.lstrip()
            sep_index = _find_separator(line)
            if sep_index == -1:
                # A key with no value
                key_raw, value = line.rstrip(), ''
            else:
                key_raw = line[:sep_index]
                value = line[sep_index + 1:].lstrip(' \t\f')

            # Handle multiline values
            while _has_unescaped_trailing_backslash(value):
                value = value[:-1]
                i += 1
                if i >= len(lines):
                    break
                value += lines[i].lstrip()
            i += 1

            key_raw = key_raw.rstrip()
            if _has_unescaped_trailing_backslash(key_raw):
                # The stripped whitespace was an escaped space
                key_raw += ' '
            key = unescape_key(key_raw)
            if key:
                entries.append((key, unescape_value(value), current_comment))
            current_comment = ''

        return entries

    def render(self, records: Sequence[StringRecord]) -> str:
        lines = [ENCODING_HEADER]
        for record in records:
            if record.description and record.description.strip():
                lines.append(f"# {_comment_text(record.description)}")
            lines.append(f"{escape_key(record.key)}={escape_value(record.text)}")
        return '\n'.join(lines) + '\n'
