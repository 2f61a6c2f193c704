"""Exception hierarchy for nanothread."""


class NanothreadError(Exception):
    """Base class for all nanothread errors."""


class ConfigurationError(NanothreadError):
    """Required configuration is missing or invalid. Fatal at startup."""


class IntegrityError(NanothreadError):
    """Persisted data could not be authenticated or decoded."""


class InvalidOptionError(NanothreadError):
    """A caller supplied a disallowed option value.

    These are reported back to the caller as a rejected request and are
    never logged as errors.
    """


class ProviderError(NanothreadError):
    """Generic failure from the language-model provider."""


class QuotaExceededError(ProviderError):
    """The provider account is out of quota."""


class ModelNotFoundError(ProviderError):
    """The requested model does not exist at the provider."""
