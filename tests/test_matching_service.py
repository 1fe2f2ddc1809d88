"""Unit tests for MatchingService session lifecycle and finalisation."""
import uuid

import pytest

from photomatch.domain import DIMENSIONS, DimensionWeights, MatchResult, SessionStatus
from photomatch.exceptions import (
    AnswersChangedError,
    DegradedAggregateError,
    InvalidSessionTransition,
    NotFoundError,
    PersistenceConflict,
    ValidationError,
)
from photomatch.services.matching_service import MatchingService

from conftest import InMemoryMatchingStore

ALL_DIMENSIONS = {dim.value: 1.0 for dim in DIMENSIONS}


def _service(store, **kwargs):
    return MatchingService(sessions=store, candidates=store, results=store, **kwargs)


def _uniform(vector):
    return {dim: vector for dim in DIMENSIONS}


async def _answered_session(store, service, vector):
    qid = store.add_question(1, ALL_DIMENSIONS)
    cid = store.add_choice(qid, vector=vector)
    session = await service.start_session()
    await service.record_answer(session.session_id, qid, cid)
    return session.session_id


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_new_session_is_started(self, store):
        session = await _service(store).start_session()
        assert session.status is SessionStatus.STARTED
        assert session.session_token

    @pytest.mark.asyncio
    async def test_answer_moves_session_to_answering(self, store, basis):
        service = _service(store)
        session_id = await _answered_session(store, service, basis["x"])
        assert (await service.get_session(session_id)).status is SessionStatus.ANSWERING

    @pytest.mark.asyncio
    async def test_unknown_session_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await _service(store).get_session(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await _service(store).compute(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_results_empty_until_scored(self, store, basis):
        service = _service(store)
        session_id = await _answered_session(store, service, basis["x"])
        assert await service.get_results(session_id) == []

    @pytest.mark.asyncio
    async def test_answers_frozen_after_scoring(self, store, basis):
        service = _service(store)
        store.add_candidate(vectors=_uniform(basis["x"]))
        session_id = await _answered_session(store, service, basis["x"])
        await service.compute(session_id)

        qid = next(iter(store.questions))
        cid = next(iter(store.options))
        with pytest.raises(InvalidSessionTransition):
            await service.record_answer(session_id, qid, cid)


class TestCompute:

    @pytest.mark.asyncio
    async def test_ranks_best_candidate_first(self, store, basis):
        service = _service(store)
        near = store.add_candidate(vectors=_uniform(basis["x"]))
        far = store.add_candidate(vectors=_uniform(basis["y"]))
        session_id = await _answered_session(store, service, basis["x"])

        results = await service.compute(session_id)

        assert [r.candidate_id for r in results] == [near, far]
        assert [r.rank for r in results] == [1, 2]
        assert results[0].total_score == pytest.approx(1.0)
        assert results[1].total_score == pytest.approx(0.0)
        assert store.sessions[session_id].status is SessionStatus.SCORED

    @pytest.mark.asyncio
    async def test_top_k_limits_results(self, store, basis):
        service = _service(store, top_k=2)
        for _ in range(5):
            store.add_candidate(vectors=_uniform(basis["x"]))
        session_id = await _answered_session(store, service, basis["x"])
        assert len(await service.compute(session_id)) == 2

    @pytest.mark.asyncio
    async def test_second_compute_is_a_cache_hit(self, store, basis):
        service = _service(store)
        store.add_candidate(vectors=_uniform(basis["x"]))
        session_id = await _answered_session(store, service, basis["x"])

        first = await service.compute(session_id)
        second = await service.compute(session_id)

        assert first == second
        assert store.save_calls == 1

    @pytest.mark.asyncio
    async def test_force_replaces_result_set(self, store, basis):
        service = _service(store)
        store.add_candidate(vectors=_uniform(basis["x"]))
        session_id = await _answered_session(store, service, basis["x"])
        await service.compute(session_id)

        late = store.add_candidate(vectors=_uniform(basis["x"]))
        results = await service.compute(session_id, force=True)

        assert store.save_calls == 2
        assert late in [r.candidate_id for r in results]
        assert store.sessions[session_id].status is SessionStatus.SCORED

    @pytest.mark.asyncio
    async def test_incomplete_candidates_are_never_ranked(self, store, basis):
        service = _service(store)
        partial = _uniform(basis["x"])
        del partial[DIMENSIONS[-1]]
        excluded = store.add_candidate(vectors=partial)
        included = store.add_candidate(vectors=_uniform(basis["y"]))
        session_id = await _answered_session(store, service, basis["x"])

        results = await service.compute(session_id)

        assert [r.candidate_id for r in results] == [included]
        assert excluded not in [r.candidate_id for r in results]

    @pytest.mark.asyncio
    async def test_no_candidates_gives_empty_scored_set(self, store, basis):
        service = _service(store)
        session_id = await _answered_session(store, service, basis["x"])
        assert await service.compute(session_id) == []
        assert store.sessions[session_id].status is SessionStatus.SCORED

    @pytest.mark.asyncio
    async def test_started_session_cannot_be_computed(self, store):
        service = _service(store)
        session = await service.start_session()
        with pytest.raises(ValidationError):
            await service.compute(session.session_id)
        assert store.save_calls == 0

    @pytest.mark.asyncio
    async def test_undefined_dimension_blocks_finalisation(self, store, basis):
        service = _service(store)
        store.add_candidate(vectors=_uniform(basis["x"]))
        qid = store.add_question(1, {"style_emotion": 1.0})
        cid = store.add_choice(qid, vector=basis["x"])
        session = await service.start_session()
        await service.record_answer(session.session_id, qid, cid)

        with pytest.raises(DegradedAggregateError) as exc:
            await service.compute(session.session_id)

        assert "companion" in exc.value.dimensions
        assert store.save_calls == 0
        assert session.session_id not in store.aggregates
        assert store.sessions[session.session_id].status is SessionStatus.ANSWERING

    @pytest.mark.asyncio
    async def test_weights_change_the_ranking(self, store, basis):
        weights = DimensionWeights({"style_emotion": 1.0})
        service = _service(store, weights=weights)
        style_match = store.add_candidate(
            vectors={**_uniform(basis["y"]), DIMENSIONS[0]: basis["x"]}
        )
        rest_match = store.add_candidate(
            vectors={**_uniform(basis["x"]), DIMENSIONS[0]: basis["y"]}
        )
        session_id = await _answered_session(store, service, basis["x"])

        results = await service.compute(session_id)

        assert [r.candidate_id for r in results] == [style_match, rest_match]


class LosingRaceStore(InMemoryMatchingStore):
    """Persists a competing writer's result set, then reports the conflict."""

    def __init__(self, winner_results):
        super().__init__()
        self.winner_results = winner_results

    async def save_result_set(self, session_id, results, weights, top_k, candidates_scored, replace=False):
        self.save_calls += 1
        self.result_sets[session_id] = list(self.winner_results(session_id))
        self._set_status(session_id, SessionStatus.SCORED)
        raise PersistenceConflict(session_id)


class TestConcurrentFinalisation:

    @pytest.mark.asyncio
    async def test_conflict_returns_persisted_winner(self, basis):
        winner_id = uuid.uuid4()

        def winner(session_id):
            return [
                MatchResult(
                    session_id=session_id,
                    candidate_id=winner_id,
                    rank=1,
                    total_score=0.5,
                    dimension_scores={dim: 0.5 for dim in DIMENSIONS},
                )
            ]

        store = LosingRaceStore(winner)
        store.add_candidate(vectors=_uniform(basis["x"]))
        service = _service(store)
        session_id = await _answered_session(store, service, basis["x"])

        results = await service.compute(session_id)

        assert [r.candidate_id for r in results] == [winner_id]
        assert store.save_calls == 1


class AnswerDuringReadStore(InMemoryMatchingStore):
    """Records a late answer each time the session's answers are read."""

    def __init__(self, late_answers):
        super().__init__()
        self.late_answers = list(late_answers)
        self.reads = 0

    async def get_answered_choices(self, session_id):
        answers = await super().get_answered_choices(session_id)
        self.reads += 1
        if self.late_answers:
            qid, cid = self.late_answers.pop(0)
            await self.record_answer(session_id, qid, cid)
        return answers


class TestAnswersChangingDuringCompute:

    @pytest.mark.asyncio
    async def test_late_answer_is_included_after_retry(self, basis):
        store = AnswerDuringReadStore([])
        service = _service(store)
        x_match = store.add_candidate(vectors=_uniform(basis["x"]))
        y_match = store.add_candidate(vectors=_uniform(basis["y"]))
        session_id = await _answered_session(store, service, basis["x"])
        qid = next(iter(store.questions))
        store.late_answers.append((qid, store.add_choice(qid, vector=basis["y"])))

        results = await service.compute(session_id)

        assert store.reads == 2
        assert [r.candidate_id for r in results] == [y_match, x_match]
        assert (await service.get_session(session_id)).status is SessionStatus.SCORED

    @pytest.mark.asyncio
    async def test_gives_up_when_answers_keep_changing(self, basis):
        store = AnswerDuringReadStore([])
        service = _service(store, max_aggregate_attempts=2)
        store.add_candidate(vectors=_uniform(basis["x"]))
        session_id = await _answered_session(store, service, basis["x"])
        qid = next(iter(store.questions))
        store.late_answers.extend(
            (qid, store.add_choice(qid, vector=v)) for v in (basis["y"], basis["z"])
        )

        with pytest.raises(AnswersChangedError):
            await service.compute(session_id)

        session = await service.get_session(session_id)
        assert session.status is SessionStatus.ANSWERING
        assert store.result_sets == {}
