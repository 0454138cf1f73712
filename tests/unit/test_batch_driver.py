"""Unit tests for the batch_driver module."""
import pytest

from autotranslate.batch_driver import chunk_candidates, translate_candidates
from autotranslate.errors import BackendError
from autotranslate.reconciler import TranslationCandidate

from conftest import FakeTranslator, fake_translation, make_source_record


def make_candidates(count, prefix='key'):
    return [
        TranslationCandidate(f"{prefix}{i:02d}", make_source_record(f"{prefix}{i:02d}", f"Text {i}", f"Desc {i}"))
        for i in range(count)
    ]


def test_chunk_candidates_splits_into_consecutive_chunks():
    chunks = chunk_candidates(make_candidates(20), 15)
    assert [len(chunk) for chunk in chunks] == [15, 5]
    assert chunks[1][0].key == 'key15'


@pytest.mark.asyncio
async def test_failed_second_chunk_falls_back_to_individual_translation():
    candidates = make_candidates(20)
    translator = FakeTranslator(fail_batches_containing={'key15'})

    records = await translate_candidates(candidates, translator, 15, show_progress=False)

    assert len(translator.batch_calls) == 2
    assert translator.batch_calls[0] == [c.key for c in candidates[:15]]
    assert translator.single_calls == [f"Text {i}" for i in range(15, 20)]
    assert [record.key for record in records] == [c.key for c in candidates]
    assert all(record.text == fake_translation(c.source_record.text) for record, c in zip(records, candidates))


@pytest.mark.asyncio
async def test_records_take_the_source_hash():
    candidates = make_candidates(3)

    records = await translate_candidates(candidates, FakeTranslator(), 2, show_progress=False)

    assert [record.hash for record in records] == [c.source_record.hash for c in candidates]


@pytest.mark.asyncio
async def test_batch_and_individual_translation_give_the_same_records():
    candidates = make_candidates(7)

    batched = await translate_candidates(candidates, FakeTranslator(), 3, show_progress=False)
    individual = await translate_candidates(candidates, FakeTranslator(), 1, show_progress=False)

    assert batched == individual


@pytest.mark.asyncio
async def test_batch_size_one_never_uses_batch_calls():
    translator = FakeTranslator()

    await translate_candidates(make_candidates(4), translator, 1, show_progress=False)

    assert translator.batch_calls == []
    assert len(translator.single_calls) == 4


@pytest.mark.asyncio
async def test_batch_size_one_propagates_the_first_failure():
    translator = FakeTranslator(fail_texts={'Text 1'})

    with pytest.raises(BackendError):
        await translate_candidates(make_candidates(4), translator, 1, show_progress=False)

    assert translator.single_calls == ['Text 0', 'Text 1']


@pytest.mark.asyncio
async def test_missing_key_in_batch_answer_fails_the_chunk():
    candidates = make_candidates(4)
    translator = FakeTranslator(drop_keys={'key01'})

    records = await translate_candidates(candidates, translator, 2, show_progress=False)

    assert translator.batch_calls == [['key00', 'key01'], ['key02', 'key03']]
    assert translator.single_calls == ['Text 0', 'Text 1']
    assert [record.key for record in records] == ['key00', 'key01', 'key02', 'key03']


@pytest.mark.asyncio
async def test_failure_during_fallback_propagates():
    translator = FakeTranslator(fail_batches_containing={'key00'}, fail_texts={'Text 1'})

    with pytest.raises(BackendError):
        await translate_candidates(make_candidates(2), translator, 2, show_progress=False)


@pytest.mark.asyncio
async def test_chunk_scope_keeps_batching_after_a_failure():
    translator = FakeTranslator(fail_batches_containing={'key00'})

    await translate_candidates(make_candidates(6), translator, 2, fallback_scope='chunk', show_progress=False)

    assert len(translator.batch_calls) == 3
    assert translator.single_calls == ['Text 0', 'Text 1']


@pytest.mark.asyncio
async def test_run_scope_abandons_batching_after_the_first_failure():
    translator = FakeTranslator(fail_batches_containing={'key02'})

    records = await translate_candidates(make_candidates(6), translator, 2, fallback_scope='run',
                                         show_progress=False)

    assert translator.batch_calls == [['key00', 'key01'], ['key02', 'key03']]
    assert translator.single_calls == ['Text 2', 'Text 3', 'Text 4', 'Text 5']
    assert len(records) == 6


@pytest.mark.asyncio
async def test_no_candidates_means_no_calls(fake_translator):
    assert await translate_candidates([], fake_translator, 15, show_progress=False) == []
    assert fake_translator.total_calls == 0


@pytest.mark.asyncio
async def test_invalid_arguments_are_rejected(fake_translator):
    with pytest.raises(ValueError):
        await translate_candidates(make_candidates(1), fake_translator, 0)
    with pytest.raises(ValueError):
        await translate_candidates(make_candidates(1), fake_translator, 2, fallback_scope='language')


class UnreliableBatchTranslator(FakeTranslator):
    """Backend whose batch endpoint fails with an error from outside the package."""

    async def translate_batch(self, requests):
        self.batch_calls.append([request.key for request in requests])
        raise RuntimeError("connection reset by peer")


@pytest.mark.asyncio
async def test_any_batch_error_falls_back_to_individual_translation():
    candidates = make_candidates(2)
    translator = UnreliableBatchTranslator()

    records = await translate_candidates(candidates, translator, 2, show_progress=False)

    assert translator.batch_calls == [['key00', 'key01']]
    assert translator.single_calls == ['Text 0', 'Text 1']
    assert [record.text for record in records] == [fake_translation('Text 0'), fake_translation('Text 1')]
