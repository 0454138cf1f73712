"""Unit tests for watch mode scheduling and file polling."""
import asyncio
import os
import tempfile
import unittest

from autotranslate.errors import SourceReadError
from autotranslate.watch import RunScheduler, file_signature, watch_file

from conftest import write_file


class TestRunScheduler(unittest.IsolatedAsyncioTestCase):

    async def test_triggers_during_a_run_coalesce_into_one_more_run(self):
        started = []
        release = asyncio.Event()

        async def run():
            started.append(len(started))
            if len(started) == 1:
                await release.wait()

        scheduler = RunScheduler(run)
        scheduler.trigger()
        await asyncio.sleep(0)
        self.assertTrue(scheduler.running)

        for _ in range(5):
            scheduler.trigger()
        release.set()
        await scheduler.wait_idle()

        self.assertEqual(started, [0, 1])
        self.assertEqual(scheduler.completed_runs, 2)
        self.assertFalse(scheduler.running)

    async def test_runs_never_overlap(self):
        active = []
        overlaps = []

        async def run():
            if active:
                overlaps.append(True)
            active.append(True)
            await asyncio.sleep(0.01)
            active.pop()

        scheduler = RunScheduler(run)
        for _ in range(3):
            scheduler.trigger()
            await asyncio.sleep(0.002)
        await scheduler.wait_idle()

        self.assertEqual(overlaps, [])

    async def test_failed_run_is_logged_and_scheduler_keeps_working(self):
        calls = []

        async def run():
            calls.append(True)
            if len(calls) == 1:
                raise SourceReadError('Source file not found: strings.csv', 'strings.csv')

        scheduler = RunScheduler(run)
        with self.assertLogs('autotranslate', level='ERROR') as logs:
            scheduler.trigger()
            await scheduler.wait_idle()
        self.assertIn('Translation update failed: Source file not found', logs.output[0])

        scheduler.trigger()
        await scheduler.wait_idle()
        self.assertEqual(len(calls), 2)


class TestWatchFile(unittest.IsolatedAsyncioTestCase):

    async def test_existing_file_and_changes_are_reported_once_settled(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_file(os.path.join(temp_dir, 'strings.csv'), 'Key,Text,Description\n')
            changes = []
            stop_event = asyncio.Event()
            watcher = asyncio.ensure_future(watch_file(
                path, lambda: changes.append(file_signature(path)), stop_event,
                poll_interval=0.01, stability_threshold=0.05))

            await asyncio.sleep(0.2)
            self.assertEqual(len(changes), 1)

            write_file(path, 'Key,Text,Description\nhello,Hello,greeting\n')
            await asyncio.sleep(0.2)
            self.assertEqual(len(changes), 2)

            stop_event.set()
            await asyncio.wait_for(watcher, timeout=1)

    async def test_missing_file_is_not_reported(self):
        changes = []
        stop_event = asyncio.Event()
        watcher = asyncio.ensure_future(watch_file(
            '/nonexistent/strings.csv', lambda: changes.append(True), stop_event,
            poll_interval=0.01, stability_threshold=0.02))

        await asyncio.sleep(0.1)
        stop_event.set()
        await asyncio.wait_for(watcher, timeout=1)

        self.assertEqual(changes, [])
