"""
photomatch — Domain types shared by the matching core.

Plain, immutable values that flow between the repository and the services.
None of them know about SQLAlchemy or HTTP.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Union

from photomatch.exceptions import (
    IncompleteProfileError,
    InvalidSessionTransition,
    ValidationError,
)

Vector = tuple[float, ...]


class Dimension(str, Enum):
    """The four semantic axes along which compatibility is measured."""

    STYLE_EMOTION = "style_emotion"
    COMMUNICATION_PSYCHOLOGY = "communication_psychology"
    PURPOSE_STORY = "purpose_story"
    COMPANION = "companion"


# Canonical iteration order for every per-dimension loop.
DIMENSIONS: tuple[Dimension, ...] = (
    Dimension.STYLE_EMOTION,
    Dimension.COMMUNICATION_PSYCHOLOGY,
    Dimension.PURPOSE_STORY,
    Dimension.COMPANION,
)


# ── Vector state ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Pending:
    """No vector has been generated yet."""


@dataclass(frozen=True)
class Vectorized:
    vector: Vector
    generated_at: datetime | None = None

    @property
    def dimensions(self) -> int:
        return len(self.vector)


VectorState = Union[Pending, Vectorized]

PENDING = Pending()


def vector_state(raw: list[float] | None, generated_at: datetime | None = None) -> VectorState:
    """Lift a nullable stored column into a ``VectorState``."""
    if raw is None:
        return PENDING
    return Vectorized(tuple(float(x) for x in raw), generated_at)


# ── Weights ──────────────────────────────────────────────────────────────────


class DimensionWeights:
    """Non-negative weight per dimension, renormalised to sum to 1."""

    def __init__(self, weights: Mapping[Dimension | str, float]) -> None:
        parsed: dict[Dimension, float] = {}
        for key, value in weights.items():
            dim = Dimension(key)
            value = float(value)
            if math.isnan(value) or value < 0.0:
                raise ValidationError(f"Weight for {dim.value} must be non-negative, got {value}")
            parsed[dim] = value
        for dim in DIMENSIONS:
            parsed.setdefault(dim, 0.0)
        if sum(parsed.values()) <= 0.0:
            raise ValidationError("At least one dimension weight must be positive")
        self._raw = parsed

    @classmethod
    def equal(cls) -> "DimensionWeights":
        return cls({dim: 1.0 for dim in DIMENSIONS})

    @property
    def raw(self) -> dict[Dimension, float]:
        return dict(self._raw)

    def normalized(self) -> dict[Dimension, float]:
        total = sum(self._raw.values())
        return {dim: self._raw[dim] / total for dim in DIMENSIONS}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DimensionWeights):
            return NotImplemented
        return self.normalized() == other.normalized()

    def __repr__(self) -> str:
        inner = ", ".join(f"{d.value}={w:.3f}" for d, w in self.normalized().items())
        return f"DimensionWeights({inner})"


# ── Survey answers ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AnsweredChoice:
    """One answered question resolved to the chosen option's vector."""

    question_id: uuid.UUID
    question_order: int
    choice_id: uuid.UUID
    vector: VectorState
    weights: Mapping[Dimension, float] = field(default_factory=dict)

    def weight_for(self, dimension: Dimension) -> float:
        return float(self.weights.get(dimension, 0.0))


# ── Candidates ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CompleteCandidate:
    """A candidate with all four dimension vectors: eligible for scoring."""

    candidate_id: uuid.UUID
    created_at: datetime
    vectors: Mapping[Dimension, Vector]


@dataclass(frozen=True)
class CandidateProfile:
    candidate_id: uuid.UUID
    created_at: datetime
    vectors: Mapping[Dimension, VectorState]
    profile_completed: bool = False

    @property
    def missing_dimensions(self) -> list[str]:
        return [
            dim.value
            for dim in DIMENSIONS
            if not isinstance(self.vectors.get(dim, PENDING), Vectorized)
        ]

    def as_complete(self) -> CompleteCandidate:
        missing = self.missing_dimensions
        if missing or not self.profile_completed:
            raise IncompleteProfileError(self.candidate_id, missing or ["profile_completed"])
        return CompleteCandidate(
            candidate_id=self.candidate_id,
            created_at=self.created_at,
            vectors={dim: self.vectors[dim].vector for dim in DIMENSIONS},
        )


# ── Sessions ─────────────────────────────────────────────────────────────────


class SessionStatus(str, Enum):
    STARTED = "started"
    ANSWERING = "answering"
    READY = "ready"
    SCORED = "scored"


_ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.STARTED: frozenset({SessionStatus.ANSWERING}),
    SessionStatus.ANSWERING: frozenset({SessionStatus.ANSWERING, SessionStatus.READY}),
    # READY -> READY is a retried finalisation that failed before persisting.
    SessionStatus.READY: frozenset({SessionStatus.READY, SessionStatus.SCORED}),
    # SCORED -> SCORED only through an administrative force recompute.
    SessionStatus.SCORED: frozenset({SessionStatus.SCORED}),
}


def ensure_transition(current: SessionStatus | str, target: SessionStatus | str) -> SessionStatus:
    """Validate a session state change and return the target status."""
    current = SessionStatus(current)
    target = SessionStatus(target)
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidSessionTransition(current.value, target.value)
    return target


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: uuid.UUID
    status: SessionStatus
    session_token: str
    created_at: datetime | None = None
    ready_at: datetime | None = None
    completed_at: datetime | None = None
    answers_version: int = 0


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MatchResult:
    session_id: uuid.UUID
    candidate_id: uuid.UUID
    rank: int
    total_score: float
    dimension_scores: Mapping[Dimension, float]

    @property
    def display_score(self) -> float:
        """Map the signed score from [-1, 1] to [0, 1] for presentation."""
        return (self.total_score + 1.0) / 2.0


# ── Embedding targets ────────────────────────────────────────────────────────


class EmbeddingKind(str, Enum):
    CHOICE = "choice_embedding"
    IMAGE = "image_embedding"
    PHOTOGRAPHER_PROFILE = "photographer_profile"


@dataclass(frozen=True)
class EmbeddingTarget:
    kind: EmbeddingKind
    target_id: uuid.UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.target_id}"


@dataclass(frozen=True)
class ImageRef:
    """Reference to an image to embed; ``label`` is its descriptive text."""

    url: str | None = None
    label: str | None = None


@dataclass(frozen=True)
class EmbeddingSource:
    """What a stored target needs embedded.

    Choices carry ``text``; images carry an ``ImageRef``; photographer
    profiles carry one description per dimension (``None`` when empty).
    """

    target: EmbeddingTarget
    text: str | None = None
    image: ImageRef | None = None
    descriptions: Mapping[Dimension, str | None] = field(default_factory=dict)
