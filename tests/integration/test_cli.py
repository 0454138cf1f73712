"""Integration tests for the command line entry point."""
import json
import logging
import os
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

from autotranslate import cli
from autotranslate.content_hash import calculate_hash
from autotranslate.errors import TranslationFailedError

from conftest import read_file, write_file


class TestCli(unittest.TestCase):

    def setUp(self):
        self._temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self._temp_dir.cleanup)
        self.project_dir = self._temp_dir.name
        self.source = write_file(os.path.join(self.project_dir, 'strings.csv'),
                                 'Key,Text,Description\nhello,Hello,greeting\n')
        self.target = os.path.join(self.project_dir, 'strings_fr.csv')
        self.config_file = write_file(os.path.join(self.project_dir, 'autotranslate.json'), json.dumps({
            'source': {'file': self.source},
            'targets': [{'language': 'French', 'file': self.target}],
            'logging': {'log_to_console': False},
        }))

    def test_watch_and_update_hashes_are_exclusive(self):
        with patch('autotranslate.cli.run') as mock_run:
            exit_code = cli.main(['--config', self.config_file, '--watch', '--update-hashes'])

        self.assertEqual(exit_code, 1)
        mock_run.assert_not_called()

    def test_translation_run(self):
        with patch('autotranslate.cli.autotranslate', new_callable=AsyncMock) as mock_autotranslate:
            exit_code = cli.main(['--config', self.config_file])

        self.assertEqual(exit_code, 0)
        config = mock_autotranslate.await_args.args[0]
        self.assertEqual(config.source.file, self.source)
        self.assertFalse(config.verbose)

    def test_verbose_flag(self):
        with patch('autotranslate.cli.autotranslate', new_callable=AsyncMock) as mock_autotranslate:
            cli.main(['--config', self.config_file, '--verbose'])

        self.assertTrue(mock_autotranslate.await_args.args[0].verbose)

    def test_errors_exit_with_status_one(self):
        failure = TranslationFailedError({'French': RuntimeError('boom')})
        with patch('autotranslate.cli.autotranslate', new_callable=AsyncMock, side_effect=failure), \
                patch('autotranslate.cli.setup_logger', return_value=logging.getLogger('autotranslate')):
            with self.assertLogs('autotranslate', level='ERROR') as logs:
                exit_code = cli.main(['--config', self.config_file])

        self.assertEqual(exit_code, 1)
        self.assertIn('Error: Translation failed for 1 language(s): French: boom', logs.output[-1])

    def test_missing_config_file(self):
        missing = os.path.join(self.project_dir, 'missing.json')
        with patch('autotranslate.cli.setup_logger', return_value=logging.getLogger('autotranslate')), \
                self.assertLogs('autotranslate', level='ERROR') as logs:
            exit_code = cli.main(['--config', missing])

        self.assertEqual(exit_code, 1)
        self.assertIn('Error reading config file', logs.output[-1])

    def test_update_hashes_needs_no_api_key(self):
        write_file(self.target, 'Key,Text,Hash\nhello,Bonjour,deadbeef\n')

        with patch.dict(os.environ, {'OPENAI_API_KEY': ''}):
            exit_code = cli.main(['--config', self.config_file, '--update-hashes'])

        self.assertEqual(exit_code, 0)
        self.assertEqual(read_file(self.target),
                         f'Key,Text,Hash\nhello,Bonjour,{calculate_hash("Hello", "greeting")}\n')
