"""
photomatch — Personality classifier.

Maps an answered personality battery to one of nine personality codes.

Scoring:
  1. Each answered choice adds its fixed contribution to every code.
  2. The code with the highest accumulated score wins.
  3. Ties resolve through a fixed priority order declared with the battery.

The classifier is pure: no I/O, no randomness, no clock.  Identical ordered
inputs always return identical results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

import structlog

from photomatch.exceptions import ValidationError
from photomatch.ml.personality_battery import (
    DEFAULT_BATTERY,
    PERSONALITY_CODES,
    PERSONALITY_TYPES,
    TIE_BREAK_PRIORITY,
    BatteryQuestion,
    PersonalityType,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PersonalityResult:
    code: str
    scores: dict[str, float]
    answered_count: int

    @property
    def personality_type(self) -> PersonalityType | None:
        return PERSONALITY_TYPES.get(self.code)

    def as_dict(self) -> dict:
        info = self.personality_type
        return {
            "code": self.code,
            "name": info.name if info else None,
            "scores": dict(self.scores),
            "answered_count": self.answered_count,
        }


class PersonalityClassifier:
    """Argmax classifier over a fixed contribution table.

    Parameters
    ----------
    battery:
        Ordered questions with per-choice contributions.  Defaults to the
        21-question battery.
    priority:
        Tie-break order over all codes; earlier codes win ties.
    """

    def __init__(
        self,
        battery: Sequence[BatteryQuestion] = DEFAULT_BATTERY,
        priority: Sequence[str] = TIE_BREAK_PRIORITY,
    ) -> None:
        codes: list[str] = []
        for question in battery:
            for choice in question.choices:
                for code in choice.contributions:
                    if code not in codes:
                        codes.append(code)
        missing = [c for c in codes if c not in priority]
        if missing:
            raise ValidationError(f"Tie-break priority does not cover codes: {missing}")
        if len(set(priority)) != len(priority):
            raise ValidationError("Tie-break priority lists a code more than once")

        self._questions = {q.question_id: q for q in battery}
        if len(self._questions) != len(battery):
            raise ValidationError("Battery contains duplicate question ids")
        self._priority = tuple(priority)

    @property
    def questions(self) -> list[BatteryQuestion]:
        return list(self._questions.values())

    @property
    def codes(self) -> tuple[str, ...]:
        return self._priority

    # ── Public API ──────────────────────────────────────────────────

    def classify(
        self,
        answers: Mapping[int, str] | Iterable[tuple[int, str]],
    ) -> PersonalityResult:
        """Score an answer set and return the winning code with all scores.

        Parameters
        ----------
        answers:
            ``{question_id: choice_id}`` or an ordered sequence of
            ``(question_id, choice_id)`` pairs.  Each question may be
            answered at most once.

        Raises
        ------
        ValidationError
            Empty input, unknown question or choice ids, or a question
            answered twice.
        """
        pairs = list(answers.items()) if isinstance(answers, Mapping) else list(answers)
        if not pairs:
            raise ValidationError("At least one answer is required")

        scores: dict[str, float] = {code: 0.0 for code in self._priority}
        seen: set[int] = set()

        for question_id, choice_id in pairs:
            question = self._questions.get(question_id)
            if question is None:
                raise ValidationError(f"Unknown personality question {question_id!r}")
            if question_id in seen:
                raise ValidationError(f"Question {question_id} answered more than once")
            seen.add(question_id)

            choice = question.choice(choice_id)
            if choice is None:
                raise ValidationError(
                    f"Choice {choice_id!r} does not belong to question {question_id}"
                )
            for code, points in choice.contributions.items():
                scores[code] += float(points)

        code = self._argmax(scores)
        logger.debug(
            "personality_classified",
            code=code,
            answered=len(pairs),
            top_score=scores[code],
        )
        return PersonalityResult(code=code, scores=scores, answered_count=len(pairs))

    # ── Internal helpers ────────────────────────────────────────────

    def _argmax(self, scores: Mapping[str, float]) -> str:
        best_code = self._priority[0]
        best = scores[best_code]
        # strict > keeps the earliest code on ties
        for code in self._priority[1:]:
            if scores[code] > best:
                best_code, best = code, scores[code]
        return best_code


def list_personality_types() -> list[PersonalityType]:
    return [PERSONALITY_TYPES[code] for code in PERSONALITY_CODES]
