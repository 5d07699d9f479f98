"""Domain-level exceptions for trait vectors and archetypes."""

from __future__ import annotations


class MatchingError(Exception):
    """Base class for matching feature errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class InvalidTraitVector(MatchingError, ValueError):
    """Raised when a trait value is missing, non-numeric or outside [0, 100]."""

    reason = "invalid_trait_vector"

    def __init__(self, field: str, value: object) -> None:
        super().__init__()
        self.field = field
        self.value = value

    def __str__(self) -> str:
        return f"{self.reason}: {self.field}={self.value!r}"


class UnknownArchetype(MatchingError, ValueError):
    reason = "unknown_archetype"

    def __init__(self, value: object) -> None:
        super().__init__()
        self.value = value

    def __str__(self) -> str:
        return f"{self.reason}: {self.value!r}"
