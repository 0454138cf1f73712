import os
from typing import Dict, List, Optional, Sequence, Set

import pytest

from autotranslate.app_config import build_app_config
from autotranslate.content_hash import calculate_hash
from autotranslate.errors import BackendError
from autotranslate.records import SourceRecord, TranslationRequest

# Keep the tests independent from the developer's shell environment.
os.environ.setdefault('OPENAI_API_KEY', 'DUMMY_KEY_FOR_TESTING')


def fake_translation(text: str, language: str = 'French') -> str:
    return f"[{language}] {text}"


class FakeTranslator:
    """
    In-memory translation backend that records every call.

    ``fail_batches_containing`` makes any batch containing one of those keys
    raise; ``drop_keys`` silently omits keys from batch answers; ``fail_texts``
    makes individual translations of those texts raise.
    """

    def __init__(
            self,
            language: str = 'French',
            fail_batches_containing: Optional[Set[str]] = None,
            drop_keys: Optional[Set[str]] = None,
            fail_texts: Optional[Set[str]] = None,
            fail_all: bool = False
    ):
        self.language = language
        self.fail_batches_containing = fail_batches_containing or set()
        self.drop_keys = drop_keys or set()
        self.fail_texts = fail_texts or set()
        self.fail_all = fail_all
        self.single_calls: List[str] = []
        self.batch_calls: List[List[str]] = []

    @property
    def total_calls(self) -> int:
        return len(self.single_calls) + len(self.batch_calls)

    async def translate(self, text: str, description: str = '') -> str:
        self.single_calls.append(text)
        if self.fail_all or text in self.fail_texts:
            raise BackendError(f"Backend unavailable for {text!r}")
        return fake_translation(text, self.language)

    async def translate_batch(self, requests: Sequence[TranslationRequest]) -> Dict[str, str]:
        keys = [request.key for request in requests]
        self.batch_calls.append(keys)
        if self.fail_all or self.fail_batches_containing.intersection(keys):
            raise BackendError("Batch request failed")
        return {
            request.key: fake_translation(request.text, self.language)
            for request in requests
            if request.key not in self.drop_keys
        }


class FakeTranslatorFactory:
    """Hands out one FakeTranslator per language and remembers them."""

    def __init__(self, **overrides_by_language):
        self.overrides_by_language = overrides_by_language
        self.translators: Dict[str, FakeTranslator] = {}

    def __call__(self, source_language, target):
        options = self.overrides_by_language.get(target.language, {})
        translator = FakeTranslator(language=target.language, **options)
        self.translators[target.language] = translator
        return translator


def make_source_record(key: str, text: str, description: str = '') -> SourceRecord:
    return SourceRecord(key=key, text=text, description=description, hash=calculate_hash(text, description))


def write_file(path, content: str) -> str:
    path = str(path)
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)
    return path


def read_file(path) -> str:
    with open(str(path), 'r', encoding='utf-8', newline='') as f:
        return f.read()


@pytest.fixture
def fake_translator():
    return FakeTranslator()


@pytest.fixture
def fake_factory():
    return FakeTranslatorFactory()


@pytest.fixture
def project_dir(tmp_path):
    """A project with a two-string CSV source file and no target files yet."""
    write_file(tmp_path / 'strings.csv',
               'Key,Text,Description\n'
               'hello,Hello,greeting\n'
               'bye,Goodbye,farewell\n')
    return tmp_path


@pytest.fixture
def make_config(project_dir):
    """Build an AppConfig whose paths live in the project directory."""
    def _make_config(languages: Sequence[str] = ('French',), **raw_overrides):
        raw = {
            'source': {'file': str(project_dir / 'strings.csv')},
            'targets': [
                {'language': language, 'file': str(project_dir / f'strings_{language.lower()}.csv')}
                for language in languages
            ],
            'logging': {'log_to_console': False},
        }
        raw.update(raw_overrides)
        return build_app_config(raw)
    return _make_config
