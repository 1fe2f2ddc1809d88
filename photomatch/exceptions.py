"""
photomatch — Error taxonomy.

Every failure raised by the matching core derives from ``PhotomatchError`` so
the HTTP layer can translate it in one place and batch callers can count it.
"""

from __future__ import annotations

from typing import Iterable


class PhotomatchError(Exception):
    """Base class for all matching-core errors."""


class ValidationError(PhotomatchError):
    """Missing or malformed identifiers or payloads."""


class InvalidSessionTransition(ValidationError):
    """A session was asked to move to a state it cannot reach."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Session cannot move from {current!r} to {target!r}")


class NotFoundError(PhotomatchError):
    """A referenced session, question, choice or candidate does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class IncompleteProfileError(PhotomatchError):
    """A candidate lacks one or more dimension vectors."""

    def __init__(self, candidate_id: object, missing: Iterable[str]) -> None:
        self.candidate_id = candidate_id
        self.missing = tuple(missing)
        super().__init__(
            f"Candidate {candidate_id} is incomplete; missing {', '.join(self.missing)}"
        )


class ProviderError(PhotomatchError):
    """The external vector provider failed (timeout, rate limit, bad payload)."""

    def __init__(self, reason: str, *, retryable: bool = False) -> None:
        self.reason = reason
        self.retryable = retryable
        super().__init__(reason)


class VectorDimensionError(PhotomatchError):
    """Two vectors that must be compared have different lengths."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        suffix = f" ({context})" if context else ""
        super().__init__(
            f"Vector dimensionality mismatch: expected {expected}, got {actual}{suffix}"
        )


class DegradedAggregateError(PhotomatchError):
    """At least one dimension aggregate could not be computed."""

    def __init__(self, session_id: object, dimensions: Iterable[str]) -> None:
        self.session_id = session_id
        self.dimensions = tuple(dimensions)
        super().__init__(
            f"Session {session_id} cannot be finalised; no usable vectors for "
            f"{', '.join(self.dimensions)}"
        )


class PersistenceConflict(PhotomatchError):
    """Another writer already persisted the result set for this session."""

    def __init__(self, session_id: object) -> None:
        self.session_id = session_id
        super().__init__(f"Result set for session {session_id} already persisted")


class AnswersChangedError(PhotomatchError):
    """The session's answers changed after they were read for aggregation."""

    def __init__(self, session_id: object, expected_version: int, actual_version: int) -> None:
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Answers for session {session_id} changed during computation "
            f"(read version {expected_version}, now {actual_version})"
        )
