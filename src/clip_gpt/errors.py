class ClipGptError(Exception):
    """Base class for errors raised by clip-gpt."""


class ConfigurationError(ClipGptError, ValueError):
    """Raised before any network attempt when the configuration cannot be used."""


class ProviderResponseError(ClipGptError):
    """The provider answered, but not with a usable chat completion."""
