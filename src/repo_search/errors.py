"""repo_search exception hierarchy."""


class RepoSearchError(Exception):
    """Base exception for all repo_search errors."""


class ValidationError(RepoSearchError, ValueError):
    """Invalid argument or inconsistent data handed to the engine."""


class DimensionMismatchError(ValidationError):
    """Two vectors that must be compared have different lengths."""


class NotIndexedError(RepoSearchError):
    """The repository has no usable index."""


class ProviderError(RepoSearchError):
    """The embedding provider failed, retries included."""


class CacheError(RepoSearchError):
    """A stored index cannot be used."""


class CacheMissingError(CacheError):
    """No index document exists for the repository."""


class CacheCorruptError(CacheError):
    """The index document is unreadable or fails schema validation."""


class CacheVersionError(CacheCorruptError):
    """The index document was written with another schema version."""
