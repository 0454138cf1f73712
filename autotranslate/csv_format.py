import csv
import io
from typing import List, Sequence

from autotranslate.record_format import Entry, RecordFormat
from autotranslate.records import StringRecord, TargetRecord

SOURCE_HEADER = ['Key', 'Text', 'Description']
TARGET_HEADER = ['Key', 'Text', 'Hash']


def _write_rows(header: List[str], rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


class CsvFormat(RecordFormat):
    """
    Comma-separated files with a header row.

    Source files have the columns Key, Text, Description and target files have
    Key, Text, Hash. Cells are trimmed and rows without a key or text are skipped.
    """
    name = 'csv'
    extensions = ('.csv',)

    def parse_entries(self, content: str) -> List[Entry]:
        entries: List[Entry] = []
        try:
            rows = list(csv.reader(io.StringIO(content, newline='')))
        except csv.Error as e:
            raise ValueError(str(e)) from e

        for row in rows[1:]:
            columns = [cell.strip() for cell in row] + ['', '', '']
            key, text, annotation = columns[:3]
            if not key or not text:
                continue
            entries.append((key, text, annotation))
        return entries

    def render(self, records: Sequence[StringRecord]) -> str:
        return _write_rows(SOURCE_HEADER, ([r.key, r.text, r.description] for r in records))

    def render_target(self, records: Sequence[TargetRecord]) -> str:
        return _write_rows(TARGET_HEADER, ([r.key, r.text, r.hash] for r in records))
