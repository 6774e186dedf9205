from __future__ import annotations

"""Typed failures raised by the scenario engine.

Callers in the presentation layer catch these to show actionable messages:

- `NotFound`: a scenario or template id does not exist
- `ValidationFailure`: malformed input (empty name, bad expiry, bad config)
- `CloneFailure`: one live collection could not be copied (recovered locally)
- `StorageFailure`: the persistence collaborator rejected a read or write

`NotFound` and `ValidationFailure` also derive from the matching builtin
exceptions so generic `LookupError`/`ValueError` handlers keep working.
"""


class ScenarioError(Exception):
    """Base class for all scenario engine failures."""


class NotFound(ScenarioError, LookupError):
    """Raised when operating on an id that is not stored."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} '{identifier}' not found")


class ValidationFailure(ScenarioError, ValueError):
    """Raised for malformed parameters or configuration."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class CloneFailure(ScenarioError):
    """Raised when a live collection cannot be structurally copied."""

    def __init__(self, collection: str, reason: str):
        self.collection = collection
        self.reason = reason
        super().__init__(f"Could not clone '{collection}': {reason}")


class StorageFailure(ScenarioError, RuntimeError):
    """Raised when a storage read or write fails."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)
