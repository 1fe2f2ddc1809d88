"""
photomatch — Dimension aggregator.

Combines a session's answered choices into one unit-length vector per
dimension:

  aggregate_d = normalize( Σ w_i,d · v_i  /  Σ w_i,d )

where the sums run over answers with a non-zero weight on dimension ``d``
whose vector has been generated.  Answers still pending are skipped and
flag the dimension as degraded.  A dimension with no usable weight is
undefined and blocks finalisation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

import structlog

from photomatch.domain import DIMENSIONS, AnsweredChoice, Dimension, Vector, Vectorized
from photomatch.exceptions import DegradedAggregateError
from photomatch.ml.vectors import l2_normalize, weighted_sum

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AggregateProfile:
    vectors: Mapping[Dimension, Vector]
    degraded: frozenset[Dimension] = frozenset()
    undefined: frozenset[Dimension] = frozenset()
    skipped_answers: tuple = field(default_factory=tuple)

    @property
    def is_complete(self) -> bool:
        return not self.undefined and all(dim in self.vectors for dim in DIMENSIONS)

    def require_complete(self, session_id: object = None) -> "AggregateProfile":
        """Return self, or raise ``DegradedAggregateError`` naming undefined dimensions."""
        if not self.is_complete:
            missing = [d.value for d in DIMENSIONS if d in self.undefined or d not in self.vectors]
            raise DegradedAggregateError(session_id, missing)
        return self


class DimensionAggregator:
    """Stateless; safe to share across sessions."""

    def aggregate(self, answers: Iterable[AnsweredChoice]) -> AggregateProfile:
        # question order fixes the summation order so recomputation is bit-identical
        ordered = sorted(answers, key=lambda a: (a.question_order, str(a.question_id)))

        vectors: dict[Dimension, Vector] = {}
        degraded: set[Dimension] = set()
        undefined: set[Dimension] = set()
        skipped: list = []

        for dim in DIMENSIONS:
            usable: list[Vector] = []
            weights: list[float] = []
            for answer in ordered:
                weight = answer.weight_for(dim)
                if weight == 0.0:
                    continue
                if not isinstance(answer.vector, Vectorized):
                    degraded.add(dim)
                    if answer.choice_id not in skipped:
                        skipped.append(answer.choice_id)
                    continue
                usable.append(answer.vector.vector)
                weights.append(weight)

            total, weight_total = weighted_sum(usable, weights)
            if weight_total == 0.0:
                undefined.add(dim)
                continue
            vectors[dim] = tuple(float(x) for x in l2_normalize(total / weight_total))

        if degraded or undefined:
            logger.info(
                "aggregate_degraded",
                degraded=sorted(d.value for d in degraded),
                undefined=sorted(d.value for d in undefined),
                skipped_answers=len(skipped),
            )

        return AggregateProfile(
            vectors=vectors,
            degraded=frozenset(degraded),
            undefined=frozenset(undefined),
            skipped_answers=tuple(skipped),
        )
