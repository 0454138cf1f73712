"""Application configuration for autotranslate."""
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

import jsonschema
import yaml
from dotenv import load_dotenv

from autotranslate.errors import ConfigError
from autotranslate.record_store import validate_format_name

DEFAULT_CONFIG_FILE = 'autotranslate.json'
DEFAULT_BATCH_SIZE = 15
DEFAULT_SOURCE_LANGUAGE = 'English'
DEFAULT_MODEL_NAME = 'gpt-4.1'

# Structural checks only. Required fields are checked by hand first so that the
# most common mistakes get short, specific messages.
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "batchSize": {"type": "integer"},
        "batch_size": {"type": "integer"},
        "instructions": {"type": ["string", "null"]},
        "verbose": {"type": "boolean"},
        "model_name": {"type": "string"},
        "max_concurrent_api_calls": {"type": "integer", "minimum": 1},
        "requests_per_minute": {"type": "integer", "minimum": 1},
        "max_model_tokens": {"type": "integer", "minimum": 1},
        "source": {
            "type": "object",
            "properties": {
                "file": {"type": "string"},
                "format": {"type": ["string", "null"]},
                "language": {"type": "string"},
                "outputs": {"$ref": "#/definitions/outputs"}
            }
        },
        "targets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "language": {"type": "string"},
                    "file": {"type": "string"},
                    "format": {"type": ["string", "null"]},
                    "instructions": {"type": ["string", "null"]},
                    "outputs": {"$ref": "#/definitions/outputs"}
                }
            }
        },
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": ["string", "null"]},
                "log_to_console": {"type": "boolean"}
            }
        }
    },
    "definitions": {
        "outputs": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "file": {"type": "string", "minLength": 1},
                    "format": {"type": "string", "minLength": 1}
                },
                "required": ["file", "format"]
            }
        }
    }
}


@dataclass(frozen=True)
class OutputConfig:
    file: str
    format: str


@dataclass(frozen=True)
class SourceConfig:
    file: str
    format: Optional[str] = None
    language: str = DEFAULT_SOURCE_LANGUAGE
    outputs: Tuple[OutputConfig, ...] = ()


@dataclass(frozen=True)
class TargetConfig:
    language: str
    file: str
    format: Optional[str] = None
    instructions: Optional[str] = None
    outputs: Tuple[OutputConfig, ...] = ()


@dataclass(frozen=True)
class LoggingConfig:
    log_level: str = 'INFO'
    log_file_path: Optional[str] = None
    log_to_console: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Validated, immutable configuration for one or more runs."""
    source: SourceConfig
    targets: Tuple[TargetConfig, ...]
    batch_size: int = DEFAULT_BATCH_SIZE
    instructions: Optional[str] = None
    verbose: bool = False

    # Model configuration
    model_name: str = DEFAULT_MODEL_NAME
    max_model_tokens: int = 8000

    # Concurrency settings
    max_concurrent_api_calls: int = 4
    requests_per_minute: int = 60

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_verbose(self, verbose: bool) -> 'AppConfig':
        return replace(self, verbose=verbose)


def _build_outputs(raw_outputs) -> Tuple[OutputConfig, ...]:
    return tuple(OutputConfig(file=output['file'], format=output['format']) for output in raw_outputs or [])


def _is_positive_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def build_app_config(raw: Dict[str, Any], validate_llm_settings: bool = True) -> AppConfig:
    """
    Validate a raw configuration dictionary and build the immutable AppConfig.

    Args:
        raw: The parsed configuration file.
        validate_llm_settings: Whether to validate settings that only matter when
            translating (batchSize); update-hashes mode skips them.

    Returns:
        AppConfig: The validated configuration.

    Raises:
        ConfigError: If a required field is missing or a value is invalid.
    """
    if not isinstance(raw, dict):
        raise ConfigError('Config must be a JSON or YAML object')

    source = raw.get('source') or {}
    if not isinstance(source, dict) or not source.get('file'):
        raise ConfigError('Config must specify source.file')

    targets = raw.get('targets') or []
    if not isinstance(targets, list) or len(targets) == 0:
        raise ConfigError('Config must specify at least one target language')

    for target in targets:
        if not isinstance(target, dict) or not target.get('language') or not target.get('file'):
            raise ConfigError('Each target must specify both language and file')

    batch_size = raw.get('batchSize', raw.get('batch_size', DEFAULT_BATCH_SIZE))
    if validate_llm_settings and not _is_positive_integer(batch_size):
        raise ConfigError('batchSize must be a positive integer')

    try:
        jsonschema.validate(instance=raw, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '.'.join(str(part) for part in e.absolute_path) or 'config'
        raise ConfigError(f"Invalid configuration at '{location}': {e.message}", e) from e

    validate_format_name(source.get('format'), 'source')
    for output in source.get('outputs') or []:
        validate_format_name(output['format'], f"output {output['file']}")
    for target in targets:
        validate_format_name(target.get('format'), f"target {target['language']}")
        for output in target.get('outputs') or []:
            validate_format_name(output['format'], f"output {output['file']}")

    log_config = raw.get('logging') or {}

    return AppConfig(
        source=SourceConfig(
            file=source['file'],
            format=source.get('format'),
            language=source.get('language') or DEFAULT_SOURCE_LANGUAGE,
            outputs=_build_outputs(source.get('outputs')),
        ),
        targets=tuple(
            TargetConfig(
                language=target['language'],
                file=target['file'],
                format=target.get('format'),
                instructions=target.get('instructions'),
                outputs=_build_outputs(target.get('outputs')),
            )
            for target in targets
        ),
        batch_size=batch_size if _is_positive_integer(batch_size) else DEFAULT_BATCH_SIZE,
        instructions=raw.get('instructions'),
        verbose=bool(raw.get('verbose', False)),
        model_name=raw.get('model_name', DEFAULT_MODEL_NAME),
        max_model_tokens=raw.get('max_model_tokens', 8000),
        max_concurrent_api_calls=raw.get('max_concurrent_api_calls', 4),
        requests_per_minute=raw.get('requests_per_minute', 60),
        logging=LoggingConfig(
            log_level=str(log_config.get('log_level', 'INFO')).upper(),
            log_file_path=log_config.get('log_file_path'),
            log_to_console=log_config.get('log_to_console', True),
        ),
    )


def _resolve_config_path(config_path: Optional[str]) -> str:
    config_file = config_path or os.environ.get('AUTOTRANSLATE_CONFIG_FILE', DEFAULT_CONFIG_FILE)
    return os.path.abspath(config_file)


def _load_dotenv_files(config_file: str) -> None:
    """Load a .env file next to the config file, or from the working directory."""
    dotenv_path_config_dir = os.path.join(os.path.dirname(config_file), '.env')
    dotenv_path_cwd = os.path.join(os.getcwd(), '.env')

    if os.path.exists(dotenv_path_config_dir):
        load_dotenv(dotenv_path_config_dir)
    elif os.path.exists(dotenv_path_cwd):
        load_dotenv(dotenv_path_cwd)


def _load_config_file(config_file: str) -> Dict[str, Any]:
    """Load the configuration file. YAML is a superset of JSON, so both are accepted."""
    if not os.path.exists(config_file):
        raise ConfigError(f"Error reading config file {config_file}: file not found")

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error reading config file {config_file}: invalid JSON/YAML: {e}", e) from e
    except OSError as e:
        raise ConfigError(f"Error reading config file {config_file}: {e}", e) from e

    if loaded_config is None:
        raise ConfigError(f"Error reading config file {config_file}: file is empty")
    if not isinstance(loaded_config, dict):
        raise ConfigError(f"Error reading config file {config_file}: must contain an object")
    return loaded_config


def _apply_environment_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    raw = dict(raw)
    model_name = os.environ.get('AUTOTRANSLATE_MODEL_NAME')
    if model_name:
        raw['model_name'] = model_name

    batch_size = os.environ.get('AUTOTRANSLATE_BATCH_SIZE')
    if batch_size:
        try:
            raw['batchSize'] = int(batch_size)
        except ValueError as e:
            raise ConfigError('batchSize must be a positive integer', e) from e
        raw.pop('batch_size', None)
    return raw


def load_app_config(
        config_path: Optional[str] = None,
        verbose: bool = False,
        validate_llm_settings: bool = True
) -> AppConfig:
    """
    Load application configuration from the config file and environment variables.

    Args:
        config_path: Path to the config file. Defaults to AUTOTRANSLATE_CONFIG_FILE
            or ``autotranslate.json`` in the working directory.
        verbose: Forces verbose output on; ``verbose: false`` in the file cannot override it.
        validate_llm_settings: See build_app_config.

    Returns:
        AppConfig: The loaded application configuration.
    """
    config_file = _resolve_config_path(config_path)
    _load_dotenv_files(config_file)

    raw = _apply_environment_overrides(_load_config_file(config_file))
    config = build_app_config(raw, validate_llm_settings=validate_llm_settings)

    if verbose and not config.verbose:
        config = config.with_verbose(True)
    return config
