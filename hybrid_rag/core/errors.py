"""Exception hierarchy for the retrieval engine."""


class HybridRagError(Exception):
    """Base exception for all engine errors."""

    pass


class ConfigurationError(HybridRagError, ValueError):
    """Raised when the engine is built with a malformed configuration."""

    pass


class ProviderError(HybridRagError):
    """Raised when an embedding or completion provider fails."""

    pass


class ProviderUnreachableError(ProviderError):
    """Raised on transport-level failures (connection refused, timeout)."""

    pass


class CompletionError(ProviderError):
    """Raised when the completion model answers with an error."""

    pass


class CaseFileError(HybridRagError, ValueError):
    """Raised when a benchmark case file is empty or lacks required columns."""

    pass
