"""Error taxonomy for the memory index.

Only ConfigError is raised to callers (bad config files). The others mark
the subsystem a failure came from; the manager catches them, logs, and
degrades the matching capability instead of propagating.
"""

from __future__ import annotations


class MnemoError(Exception):
    """Base class for all mnemo errors."""


class ConfigError(MnemoError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class StorageError(MnemoError):
    """Schema creation or optional extension loading failed."""


class EmbeddingError(MnemoError):
    """Embedding provider could not be created or failed during inference."""


class SyncError(MnemoError):
    """A sync pass failed; the index stays dirty and is retried on the next trigger."""


class IsolationError(MnemoError):
    """The worker process crashed or exited; the proxy must be reconstructed."""
