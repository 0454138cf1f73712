from typing import Optional, Sequence


class AutotranslateError(Exception):
    def __init__(self, message, error=None):
        super().__init__(message)
        self.error = error


class ConfigError(AutotranslateError):
    """ The configuration is incomplete or invalid; raised before any work starts """


class SourceReadError(AutotranslateError):
    def __init__(self, message, path: Optional[str] = None, error=None):
        super().__init__(message, error)
        self.path = path


class TargetReadError(AutotranslateError):
    """ A target file exists but could not be parsed (a missing file is not an error) """
    def __init__(self, message, path: Optional[str] = None, error=None):
        super().__init__(message, error)
        self.path = path


class OutputWriteError(AutotranslateError):
    def __init__(self, message, path: Optional[str] = None, error=None):
        super().__init__(message, error)
        self.path = path


class TranslationError(AutotranslateError):
    pass


class BackendError(TranslationError):
    """ The translation API call failed (network, rate limit, server error) """


class InvalidResponseError(TranslationError):
    def __init__(self, message, response: Optional[str] = None, error=None):
        super().__init__(message, error)
        self.response = response


class MissingTranslationError(TranslationError):
    def __init__(self, message, keys: Sequence[str]):
        super().__init__(message)
        self.keys = list(keys)


class TranslationFailedError(AutotranslateError):
    """ One or more target languages could not be translated; nothing was written """
    def __init__(self, failures: dict):
        self.failures = failures
        details = "; ".join(f"{language}: {error}" for language, error in failures.items())
        super().__init__(f"Translation failed for {len(failures)} language(s): {details}")
