class ConfigurationError(ValueError):
    """Raised when a configuration cannot be used to build a generator or session."""


class StorageError(RuntimeError):
    """Raised when the history store cannot be read or written."""
