import logging
from typing import Dict, List, Optional, Protocol, Sequence, Union

from tqdm.asyncio import tqdm

from autotranslate.errors import MissingTranslationError
from autotranslate.reconciler import TranslationCandidate
from autotranslate.records import TargetRecord, TranslationRequest

logger = logging.getLogger("autotranslate")

FALLBACK_SCOPES = ('chunk', 'run')


class TranslationBackend(Protocol):
    async def translate(self, text: str, description: str = '') -> str:
        ...

    async def translate_batch(self, requests: Sequence[TranslationRequest]) -> Dict[str, str]:
        ...


def chunk_candidates(candidates: Sequence[TranslationCandidate], batch_size: int) -> List[List[TranslationCandidate]]:
    return [list(candidates[i:i + batch_size]) for i in range(0, len(candidates), batch_size)]


async def _translate_individually(
        chunk: Sequence[TranslationCandidate],
        translator: TranslationBackend,
        translations: Dict[str, str],
        progress: tqdm
) -> None:
    for candidate in chunk:
        record = candidate.source_record
        translations[candidate.key] = await translator.translate(record.text, record.description)
        progress.update(1)


async def _translate_chunk(
        chunk: Sequence[TranslationCandidate],
        translator: TranslationBackend
) -> Dict[str, str]:
    requests = [
        TranslationRequest(key=candidate.key, text=candidate.source_record.text,
                           description=candidate.source_record.description)
        for candidate in chunk
    ]
    result = await translator.translate_batch(requests)

    missing_keys = [candidate.key for candidate in chunk if candidate.key not in result]
    if missing_keys:
        raise MissingTranslationError(f"Missing translations for keys: {', '.join(missing_keys)}", missing_keys)
    return result


async def translate_candidates(
        candidates: Sequence[TranslationCandidate],
        translator: TranslationBackend,
        batch_size: int,
        fallback_scope: str = 'chunk',
        log: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
        show_progress: bool = True
) -> List[TargetRecord]:
    """
    Translate candidates in chunks, falling back to one call per string when a chunk fails.

    Chunks are sent one after another. When a batch call fails, or its answer
    omits a key, every string of that chunk is translated individually; chunks
    that already succeeded are never sent again. With ``fallback_scope='run'``
    batching is abandoned after the first failing chunk and all remaining
    chunks are translated individually as well.

    Args:
        candidates: Keys to translate, with the source records they come from.
        translator: The translation backend.
        batch_size: Maximum number of strings per batch call. A size of 1
            disables batching altogether.
        fallback_scope: ``'chunk'`` or ``'run'``.
        log: Logger to report fallbacks on; defaults to the package logger.
        show_progress: Whether to show a tqdm progress bar.

    Returns:
        List[TargetRecord]: One record per candidate, in candidate order, each
        carrying the hash of the source record it was translated from.

    Raises:
        TranslationError: If an individual translation fails.
    """
    if fallback_scope not in FALLBACK_SCOPES:
        raise ValueError(f"fallback_scope must be one of {', '.join(FALLBACK_SCOPES)}, got {fallback_scope!r}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size}")

    if not candidates:
        return []

    log = log or logger
    translations: Dict[str, str] = {}

    with tqdm(total=len(candidates), desc="Translating", unit="string", leave=False,
              disable=not show_progress) as progress:
        if batch_size == 1:
            await _translate_individually(candidates, translator, translations, progress)
        else:
            batching = True
            for chunk in chunk_candidates(candidates, batch_size):
                if not batching:
                    await _translate_individually(chunk, translator, translations, progress)
                    continue
                try:
                    translations.update(await _translate_chunk(chunk, translator))
                    progress.update(len(chunk))
                except Exception as e:
                    log.warning("Batch translation of %d strings failed, translating individually: %s",
                                len(chunk), e)
                    if fallback_scope == 'run':
                        batching = False
                    await _translate_individually(chunk, translator, translations, progress)

    return [
        TargetRecord(key=candidate.key, text=translations[candidate.key], hash=candidate.source_record.hash)
        for candidate in candidates
    ]
