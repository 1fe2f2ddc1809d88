"""Shared pytest fixtures and in-memory fakes for photomatch tests."""
import asyncio
import hashlib
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from photomatch.domain import (
    DIMENSIONS,
    PENDING,
    AnsweredChoice,
    CandidateProfile,
    Dimension,
    EmbeddingKind,
    EmbeddingSource,
    EmbeddingTarget,
    ImageRef,
    SessionSnapshot,
    SessionStatus,
    Vectorized,
    ensure_transition,
)
from photomatch.exceptions import (
    AnswersChangedError,
    NotFoundError,
    PersistenceConflict,
    ProviderError,
    ValidationError,
)
from photomatch.repositories.base import EmbeddingCoverage, EmbeddingJobRecord, JobStatus

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class InMemoryMatchingStore:
    """Dict-backed implementation of every repository protocol."""

    def __init__(self):
        self.sessions = {}
        self.answers = {}
        self.aggregates = {}
        self.questions = {}
        self.options = {}
        self.candidates = {}
        self.result_sets = {}
        self.jobs = {}
        self.save_calls = 0
        self.stored = []

    # ── fixture helpers ───────────────────────────────────────────

    def add_question(self, order, weights):
        qid = uuid.uuid4()
        self.questions[qid] = {"order": order, "weights": dict(weights)}
        return qid

    def add_choice(self, question_id, vector=None, text="a choice", image=None):
        cid = uuid.uuid4()
        self.options[cid] = {
            "question_id": question_id,
            "kind": EmbeddingKind.IMAGE if image is not None else EmbeddingKind.CHOICE,
            "text": text,
            "image": image,
            "vector": PENDING if vector is None else Vectorized(tuple(vector), T0),
        }
        return cid

    def add_candidate(self, vectors=None, created_at=None, descriptions=None):
        pid = uuid.uuid4()
        vectors = vectors or {}
        self.candidates[pid] = {
            "created_at": created_at or T0 + timedelta(seconds=len(self.candidates)),
            "descriptions": dict(descriptions or {}),
            "vectors": {
                dim: Vectorized(tuple(vectors[dim]), T0) if dim in vectors else PENDING
                for dim in DIMENSIONS
            },
        }
        return pid

    def _profile(self, pid):
        c = self.candidates[pid]
        return CandidateProfile(
            candidate_id=pid,
            created_at=c["created_at"],
            vectors=dict(c["vectors"]),
            profile_completed=all(isinstance(v, Vectorized) for v in c["vectors"].values()),
        )

    # ── VectorStore ───────────────────────────────────────────────

    async def get_embedding_source(self, target):
        if target.kind is EmbeddingKind.PHOTOGRAPHER_PROFILE:
            if target.target_id not in self.candidates:
                raise NotFoundError(target.kind.value, target.target_id)
            return EmbeddingSource(
                target=target, descriptions=self.candidates[target.target_id]["descriptions"]
            )
        option = self.options.get(target.target_id)
        if option is None:
            raise NotFoundError(target.kind.value, target.target_id)
        if target.kind is EmbeddingKind.IMAGE:
            return EmbeddingSource(target=target, image=option["image"])
        return EmbeddingSource(target=target, text=option["text"])

    async def store_vector(self, target, vector, generated_at, dimension=None):
        self.stored.append((target, dimension))
        state = Vectorized(tuple(vector), generated_at)
        if target.kind is EmbeddingKind.PHOTOGRAPHER_PROFILE:
            self.candidates[target.target_id]["vectors"][dimension] = state
        else:
            self.options[target.target_id]["vector"] = state

    async def update_label(self, target, label):
        option = self.options.get(target.target_id)
        if option is None:
            raise NotFoundError(target.kind.value, target.target_id)
        if option["image"] is not None:
            option["image"] = ImageRef(url=option["image"].url, label=label)
        else:
            option["text"] = label
        option["vector"] = PENDING

    async def list_missing_targets(self):
        targets = [
            EmbeddingTarget(o["kind"], oid)
            for oid, o in self.options.items()
            if not isinstance(o["vector"], Vectorized)
        ]
        targets += [
            EmbeddingTarget(EmbeddingKind.PHOTOGRAPHER_PROFILE, pid)
            for pid in self.candidates
            if not self._profile(pid).profile_completed
        ]
        return targets

    async def count_embedding_coverage(self):
        coverage = {}
        for kind in (EmbeddingKind.CHOICE, EmbeddingKind.IMAGE):
            active = [o for o in self.options.values() if o["kind"] is kind and o.get("is_active", True)]
            coverage[kind] = EmbeddingCoverage(
                total=len(active),
                generated=sum(1 for o in active if isinstance(o["vector"], Vectorized)),
            )
        profiles = [self._profile(pid) for pid in self.candidates]
        coverage[EmbeddingKind.PHOTOGRAPHER_PROFILE] = EmbeddingCoverage(
            total=len(profiles), generated=sum(1 for p in profiles if p.profile_completed)
        )
        return coverage

    # ── SessionStore ──────────────────────────────────────────────

    async def create_session(self):
        snapshot = SessionSnapshot(
            session_id=uuid.uuid4(),
            status=SessionStatus.STARTED,
            session_token=uuid.uuid4().hex,
            created_at=T0,
        )
        self.sessions[snapshot.session_id] = snapshot
        self.answers[snapshot.session_id] = {}
        return snapshot

    async def get_session(self, session_id):
        return self.sessions.get(session_id)

    def _set_status(self, session_id, status, **fields):
        current = self.sessions[session_id]
        self.sessions[session_id] = SessionSnapshot(
            session_id=session_id,
            status=status,
            session_token=current.session_token,
            created_at=current.created_at,
            ready_at=fields.get("ready_at", current.ready_at),
            completed_at=fields.get("completed_at", current.completed_at),
            answers_version=fields.get("answers_version", current.answers_version),
        )
        return self.sessions[session_id]

    async def record_answer(self, session_id, question_id, choice_id):
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        ensure_transition(session.status, SessionStatus.ANSWERING)
        if question_id not in self.questions:
            raise NotFoundError("Question", question_id)
        option = self.options.get(choice_id)
        if option is None or not option.get("is_active", True):
            raise NotFoundError("Choice", choice_id)
        if option["question_id"] != question_id:
            raise ValidationError("choice does not belong to question")
        self.answers[session_id][question_id] = choice_id
        return self._set_status(
            session_id, SessionStatus.ANSWERING, answers_version=session.answers_version + 1
        )

    async def get_answered_choices(self, session_id):
        if session_id not in self.sessions:
            raise NotFoundError("Session", session_id)
        answered = []
        for qid, cid in self.answers[session_id].items():
            q = self.questions[qid]
            answered.append(
                AnsweredChoice(
                    question_id=qid,
                    question_order=q["order"],
                    choice_id=cid,
                    vector=self.options[cid]["vector"],
                    weights={Dimension(k): v for k, v in q["weights"].items()},
                )
            )
        return sorted(answered, key=lambda a: a.question_order)

    async def save_aggregates(self, session_id, vectors, degraded, answers_version):
        session = self.sessions[session_id]
        target = SessionStatus.SCORED if session.status is SessionStatus.SCORED else SessionStatus.READY
        ensure_transition(session.status, target)
        if target is SessionStatus.READY and session.answers_version != answers_version:
            raise AnswersChangedError(session_id, answers_version, session.answers_version)
        self.aggregates[session_id] = (dict(vectors), list(degraded))
        if target is SessionStatus.READY:
            return self._set_status(session_id, SessionStatus.READY, ready_at=T0)
        return session

    # ── CandidateStore ────────────────────────────────────────────

    async def list_candidates(self, complete_only=False):
        profiles = [self._profile(pid) for pid in self.candidates]
        if complete_only:
            profiles = [p for p in profiles if p.profile_completed]
        return profiles

    # ── ResultStore ───────────────────────────────────────────────

    async def save_result_set(self, session_id, results, weights, top_k, candidates_scored, replace=False):
        self.save_calls += 1
        session = self.sessions[session_id]
        if session_id in self.result_sets and not replace:
            raise PersistenceConflict(session_id)
        ensure_transition(session.status, SessionStatus.SCORED)
        self.result_sets[session_id] = list(results)
        self._set_status(session_id, SessionStatus.SCORED, completed_at=T0)

    async def get_results(self, session_id):
        return list(self.result_sets.get(session_id, []))

    # ── JobQueue ──────────────────────────────────────────────────

    async def enqueue_job(self, target):
        for job in self.jobs.values():
            if job.target == target and job.status is JobStatus.PENDING:
                return job.job_id, False
        job = EmbeddingJobRecord(job_id=uuid.uuid4(), target=target, status=JobStatus.PENDING)
        self.jobs[job.job_id] = job
        return job.job_id, True

    async def list_pending_jobs(self, limit=None):
        pending = [j for j in self.jobs.values() if j.status is JobStatus.PENDING]
        return pending[:limit] if limit is not None else pending

    async def update_job_status(self, job_id, status, error_message=None):
        job = self.jobs[job_id]
        self.jobs[job_id] = EmbeddingJobRecord(
            job_id=job_id, target=job.target, status=JobStatus(status), error_message=error_message
        )


class FakeTextProvider:
    """Deterministic text embedder; selected texts fail or hang."""

    def __init__(self, dimensions=8, fail_on=(), hang_on=()):
        self.dimensions = dimensions
        self.fail_on = set(fail_on)
        self.hang_on = set(hang_on)
        self.calls = []

    async def embed_text(self, text):
        self.calls.append(text)
        if text in self.fail_on:
            raise ProviderError(f"simulated failure for {text!r}", retryable=True)
        if text in self.hang_on:
            await asyncio.sleep(60)
        digest = hashlib.sha256(text.encode()).digest()
        return [(b - 127.5) / 127.5 for b in digest[: self.dimensions]]


class RecordingScheduler:
    def __init__(self):
        self.acquired = 0

    async def acquire(self):
        self.acquired += 1


@pytest.fixture
def store():
    return InMemoryMatchingStore()


@pytest.fixture
def text_provider():
    return FakeTextProvider()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def basis():
    """Orthonormal basis vectors of length 4."""
    return {
        "x": (1.0, 0.0, 0.0, 0.0),
        "y": (0.0, 1.0, 0.0, 0.0),
        "z": (0.0, 0.0, 1.0, 0.0),
        "w": (0.0, 0.0, 0.0, 1.0),
    }
