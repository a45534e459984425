"""Exception hierarchy shared by the pipeline and its collaborators."""

from __future__ import annotations


class AutoStrmError(RuntimeError):
    """Base error type."""


class ConfigurationError(AutoStrmError):
    """Configuration is malformed or names an unsupported collaborator type."""


class ConfigurationMissingError(ConfigurationError):
    """A task references a source, output, provider or task that is not configured."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} '{name}' is not configured")
        self.kind = kind
        self.name = name


class SourceEnumerationError(AutoStrmError):
    """Listing files from a source failed."""


class PersistenceError(AutoStrmError):
    """Writing to an output destination failed."""

    def __init__(self, path: object, reason: object) -> None:
        super().__init__(f"Unable to write {path}: {reason}")
        self.path = path
        self.reason = reason
