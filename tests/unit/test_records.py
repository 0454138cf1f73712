"""Unit tests for the records module."""
import unittest

from autotranslate.records import TargetRecord, build_source_map, sort_records

from conftest import make_source_record


class TestBuildSourceMap(unittest.TestCase):

    def test_keeps_file_order(self):
        source_map = build_source_map([
            make_source_record('zebra', 'Zebra'),
            make_source_record('apple', 'Apple'),
        ])
        self.assertEqual(list(source_map), ['zebra', 'apple'])

    def test_duplicate_key_last_occurrence_wins_with_warning(self):
        first = make_source_record('hello', 'Hello', 'first')
        other = make_source_record('bye', 'Goodbye')
        last = make_source_record('hello', 'Hi', 'second')

        with self.assertLogs('autotranslate', level='WARNING') as logs:
            source_map = build_source_map([first, other, last])

        self.assertEqual(source_map['hello'], last)
        self.assertEqual(list(source_map), ['hello', 'bye'])
        self.assertEqual(len(logs.output), 1)
        self.assertIn("Duplicate source key 'hello'", logs.output[0])


def test_sort_records_orders_by_key():
    records = [TargetRecord('b', 'B', 'x'), TargetRecord('a', 'A', 'y')]
    assert [record.key for record in sort_records(records)] == ['a', 'b']
