import asyncio
import json
import logging
import os
import random
from typing import Callable, Dict, List, Optional, Sequence

import jsonschema
import tiktoken
from aiolimiter import AsyncLimiter
from openai import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    OpenAIError
)
from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from autotranslate.app_config import AppConfig, TargetConfig
from autotranslate.errors import BackendError, ConfigError, InvalidResponseError, MissingTranslationError
from autotranslate.records import TranslationRequest

logger = logging.getLogger("autotranslate")

PREAMBLE = """
You are an expert translator specializing in software localization. Translate user interface strings from {SOURCE_LANGUAGE} to {TARGET_LANGUAGE}.

**Instructions**:
- The text to translate is delimited by `###` markers. Translate only the text between the markers and do not include the markers in your answer.
- A description may follow the text. It explains where and how the string is used; use it as context but never translate it.
- **Preserve placeholders and markup exactly**: tokens such as `{0}`, `{name}`, `%s`, `%d` and HTML tags must appear unchanged in the translation.
- **Preserve formatting**: keep line breaks, leading and trailing punctuation and escape sequences.
- **Do not add** any additional characters, quotation marks or explanations.
- Keep the translation brief and consistent with typical software terminology in {TARGET_LANGUAGE}.
""".strip()

SINGLE_RESPONSE_INSTRUCTIONS = (
    'Respond with a JSON object of the form {"translation": "<translated text>"}.'
)

BATCH_RESPONSE_INSTRUCTIONS = (
    'Respond with a JSON object of the form '
    '{"translations": [{"key": "<key>", "translation": "<translated text>"}]} '
    'containing exactly one entry for every key you were given.'
)

TRANSLATION_SCHEMA = {
    "type": "object",
    "properties": {
        "translation": {"type": "string"}
    },
    "required": ["translation"]
}

BATCH_TRANSLATION_SCHEMA = {
    "type": "object",
    "properties": {
        "translations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "key": {"type": "string"},
                    "translation": {"type": "string"}
                },
                "required": ["key", "translation"]
            }
        }
    },
    "required": ["translations"]
}

API_ERRORS = (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError, OpenAIError)


def count_tokens(text: str, model_name: str = 'gpt-4o') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` may try to download model data. If obtaining
    the encoding fails, fall back to ``cl100k_base`` and, as a last resort, to a
    whitespace split.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("cl100k_base")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def clean_translated_text(translated_text: str, original_text: str) -> str:
    """
    Remove delimiters the model copied from the prompt.

    Leading/trailing ``###`` markers and wrapping quotes are removed unless the
    original text had them too.
    """
    if translated_text.startswith('###') and translated_text.endswith('###') and len(translated_text) >= 6 \
            and not original_text.startswith('###'):
        translated_text = translated_text[3:-3]
    if len(translated_text) >= 2 and translated_text.startswith('"') and translated_text.endswith('"') and not (
            original_text.startswith('"') and original_text.endswith('"')):
        translated_text = translated_text[1:-1]
    return translated_text


def _read_instructions(file_path: Optional[str], which: str) -> Optional[str]:
    if not file_path:
        return None
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        raise ConfigError(f"Failed to read {which} instructions file: {file_path}", e) from e


def build_instructions(
        source_language: str,
        target_language: str,
        global_instructions_file: Optional[str] = None,
        language_instructions_file: Optional[str] = None
) -> str:
    """
    Build the system prompt: the preamble, then global, then per-language instructions.

    Raises:
        ConfigError: If an instructions file cannot be read.
    """
    parts = [PREAMBLE.replace('{SOURCE_LANGUAGE}', source_language).replace('{TARGET_LANGUAGE}', target_language)]

    global_instructions = _read_instructions(global_instructions_file, 'global')
    if global_instructions:
        parts.append(global_instructions)

    language_instructions = _read_instructions(language_instructions_file, 'language')
    if language_instructions:
        parts.append(language_instructions)

    return '\n\n'.join(parts)


def build_single_prompt(text: str, description: str) -> str:
    prompt = f"###{text}###"
    if description.strip():
        prompt += f"\n\nDescription: {description}"
    return prompt


def build_batch_prompt(requests: Sequence[TranslationRequest]) -> str:
    prompt_parts = ['Translate these strings:']
    for request in requests:
        prompt_parts.append(f"\n###{request.key}###")
        prompt_parts.append(request.text)
        if request.description.strip():
            prompt_parts.append(f"Description: {request.description}")
    return '\n'.join(prompt_parts)


async def _handle_retry(attempt: int, max_retries: int, base_delay: float, context: str,
                        api_exc: Optional[Exception] = None) -> bool:
    """
    Wait before the next attempt using exponential backoff with jitter.

    A ``Retry-After`` header on the API error takes precedence over the backoff.

    Returns:
        bool: True if the operation should retry, False otherwise.
    """
    if attempt >= max_retries:
        logger.error("Request for %s failed after %d attempts.", context, max_retries)
        return False

    retry_after = None
    response = getattr(api_exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    retry_after_header = headers.get("Retry-After") if hasattr(headers, "get") else None
    if retry_after_header:
        try:
            if retry_after_header.endswith("ms"):
                retry_after = float(retry_after_header[:-2]) / 1000
            else:
                retry_after = float(retry_after_header)
        except ValueError:
            logger.warning("Failed to parse Retry-After header '%s'. Falling back to exponential backoff.",
                           retry_after_header)
    if retry_after is None:
        retry_after = base_delay * (2 ** (attempt - 1)) + random.uniform(0, base_delay)

    logger.info("Retrying request for %s in %.2f seconds (Attempt %d/%d)", context, retry_after, attempt, max_retries)
    await asyncio.sleep(retry_after)
    return True


class Translator:
    """
    Translates strings for one language pair through the OpenAI chat completions API.

    Requests for every language share one semaphore and one rate limiter so the
    concurrent per-language pipelines stay within the account's limits.
    """

    def __init__(
            self,
            source_language: str,
            target_language: str,
            global_instructions_file: Optional[str] = None,
            language_instructions_file: Optional[str] = None,
            client: Optional[AsyncOpenAI] = None,
            model_name: str = 'gpt-4.1',
            max_model_tokens: int = 8000,
            semaphore: Optional[asyncio.Semaphore] = None,
            rate_limiter: Optional[AsyncLimiter] = None,
            max_retries: int = 5,
            retry_base_delay: float = 1.0
    ):
        self.source_language = source_language
        self.target_language = target_language
        self.instructions = build_instructions(
            source_language, target_language, global_instructions_file, language_instructions_file)
        self.client = client if client is not None else create_openai_client()
        self.model_name = model_name
        self.max_model_tokens = max_model_tokens
        self.semaphore = semaphore or asyncio.Semaphore(1)
        self.rate_limiter = rate_limiter or AsyncLimiter(max_rate=60, time_period=60)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    async def translate(self, text: str, description: str = '') -> str:
        """
        Translate a single string.

        Raises:
            InvalidResponseError: If the response has no usable translation.
            BackendError: If the API call keeps failing.
        """
        prompt = build_single_prompt(text, description)
        parsed = await self._request(prompt, SINGLE_RESPONSE_INSTRUCTIONS, TRANSLATION_SCHEMA, context=repr(text))

        translation = parsed.get('translation')
        if not translation:
            raise InvalidResponseError("Invalid response format from OpenAI API: empty translation",
                                       json.dumps(parsed, ensure_ascii=False))

        return clean_translated_text(translation, text)

    async def translate_batch(self, requests: Sequence[TranslationRequest]) -> Dict[str, str]:
        """
        Translate several strings with one API call.

        Returns:
            Dict[str, str]: Translations by request key.

        Raises:
            MissingTranslationError: If the response omits any requested key.
            InvalidResponseError: If the response is malformed.
            BackendError: If the API call keeps failing.
        """
        if not requests:
            return {}

        prompt = build_batch_prompt(requests)
        prompt_tokens = count_tokens(self.instructions + prompt, self.model_name)
        logger.debug("Batch prompt for %s: %d strings, ~%d tokens", self.target_language, len(requests),
                     prompt_tokens)
        if prompt_tokens > self.max_model_tokens:
            logger.warning("Batch prompt for %s is ~%d tokens, above max_model_tokens (%d). "
                           "Consider a smaller batchSize.", self.target_language, prompt_tokens,
                           self.max_model_tokens)

        parsed = await self._request(prompt, BATCH_RESPONSE_INSTRUCTIONS, BATCH_TRANSLATION_SCHEMA,
                                     context=f"batch of {len(requests)} strings")

        texts_by_key = {request.key: request.text for request in requests}
        result: Dict[str, str] = {}
        for item in parsed['translations']:
            key = item['key']
            if key in texts_by_key and item['translation']:
                result[key] = clean_translated_text(item['translation'], texts_by_key[key])

        missing_keys = [request.key for request in requests if request.key not in result]
        if missing_keys:
            raise MissingTranslationError(f"Missing translations for keys: {', '.join(missing_keys)}", missing_keys)

        return result

    async def _request(self, prompt: str, response_instructions: str, schema: dict, context: str) -> dict:
        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.semaphore, self.rate_limiter:
                    response = await self.client.chat.completions.create(
                        model=self.model_name,
                        messages=[
                            ChatCompletionSystemMessageParam(role="system", content=self.instructions),
                            ChatCompletionSystemMessageParam(role="system", content=response_instructions),
                            ChatCompletionUserMessageParam(role="user", content=prompt)
                        ],
                        temperature=0,
                        response_format={"type": "json_object"},
                        timeout=120.0,
                    )
            except API_ERRORS as api_exc:
                logger.error("API error occurred: %s - %s", api_exc.__class__.__name__, api_exc)
                if await _handle_retry(attempt, self.max_retries, self.retry_base_delay, context, api_exc):
                    continue
                raise BackendError(f"Translation request for {context} failed: {api_exc}", api_exc) from api_exc

            return self._parse_response(response, schema)

        raise BackendError(f"Translation request for {context} failed after {self.max_retries} attempts")

    @staticmethod
    def _parse_response(response, schema: dict) -> dict:
        try:
            response_text = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise InvalidResponseError("Invalid response format from OpenAI API: no message content") from e
        if not response_text:
            raise InvalidResponseError("Invalid response format from OpenAI API: empty response")

        try:
            parsed = json.loads(response_text)
            jsonschema.validate(instance=parsed, schema=schema)
        except json.JSONDecodeError as e:
            logger.debug("Invalid AI response (JSON Decode Error):\n---\n%s\n---", response_text)
            raise InvalidResponseError(f"Invalid response format from OpenAI API: {e}", response_text, e) from e
        except jsonschema.ValidationError as e:
            logger.debug("Invalid AI response (Schema Error):\n---\n%s\n---", response_text)
            raise InvalidResponseError(f"Invalid response format from OpenAI API: {e.message}",
                                       response_text, e) from e
        return parsed


def create_openai_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """
    Create the OpenAI client from an explicit key or OPENAI_API_KEY.

    Raises:
        ConfigError: If no API key is available.
    """
    api_key = api_key or os.environ.get('OPENAI_API_KEY')
    if not api_key:
        raise ConfigError('OPENAI_API_KEY environment variable is required')
    return AsyncOpenAI(api_key=api_key)


TranslatorFactory = Callable[[str, TargetConfig], Translator]


def build_translator_factory(config: AppConfig, client: Optional[AsyncOpenAI] = None) -> TranslatorFactory:
    """
    Return a factory that builds one Translator per target language.

    The OpenAI client is created lazily so runs with nothing to translate need no API key.
    """
    semaphore = asyncio.Semaphore(config.max_concurrent_api_calls)
    rate_limiter = AsyncLimiter(max_rate=config.requests_per_minute, time_period=60)
    clients: List[AsyncOpenAI] = [client] if client is not None else []

    def factory(source_language: str, target: TargetConfig) -> Translator:
        if not clients:
            clients.append(create_openai_client())
        return Translator(
            source_language,
            target.language,
            global_instructions_file=config.instructions,
            language_instructions_file=target.instructions,
            client=clients[0],
            model_name=config.model_name,
            max_model_tokens=config.max_model_tokens,
            semaphore=semaphore,
            rate_limiter=rate_limiter,
        )

    return factory
