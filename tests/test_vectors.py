"""Unit tests for the numpy vector helpers."""
import math

import numpy as np
import pytest

from photomatch.exceptions import VectorDimensionError
from photomatch.ml.vectors import cosine_similarity, l2_normalize, weighted_sum


class TestCosineSimilarity:
    """Bounds, identities and guards of cosine similarity."""

    def test_identical_vectors_score_one(self):
        v = (0.3, -1.2, 4.5, 0.01)
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_orthogonal_vectors_score_zero(self):
        assert cosine_similarity((1.0, 0.0), (0.0, 5.0)) == pytest.approx(0.0)

    def test_opposite_vectors_score_minus_one(self):
        assert cosine_similarity((1.0, 2.0), (-2.0, -4.0)) == pytest.approx(-1.0)

    def test_zero_norm_yields_zero(self):
        assert cosine_similarity((0.0, 0.0, 0.0), (1.0, 2.0, 3.0)) == 0.0
        assert cosine_similarity((1.0, 2.0, 3.0), (0.0, 0.0, 0.0)) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(VectorDimensionError) as exc:
            cosine_similarity((1.0, 2.0), (1.0, 2.0, 3.0), context="style_emotion")
        assert exc.value.expected == 2
        assert exc.value.actual == 3
        assert "style_emotion" in str(exc.value)

    def test_result_always_within_bounds(self):
        rng = np.random.default_rng(7)
        for _ in range(200):
            a = rng.normal(size=16)
            b = rng.normal(size=16)
            assert -1.0 <= cosine_similarity(a, b) <= 1.0

    def test_invariant_to_positive_rescaling(self):
        a = (0.2, 0.9, -0.4)
        b = (1.5, -0.3, 0.8)
        scaled = tuple(x * 1000.0 for x in a)
        assert cosine_similarity(scaled, b) == pytest.approx(cosine_similarity(a, b))


class TestNormalizeAndWeightedSum:

    def test_normalize_unit_length(self):
        out = l2_normalize((3.0, 4.0))
        assert out.tolist() == pytest.approx([0.6, 0.8])
        assert math.isclose(float(np.linalg.norm(out)), 1.0)

    def test_normalize_zero_vector_unchanged(self):
        assert l2_normalize((0.0, 0.0)).tolist() == [0.0, 0.0]

    def test_weighted_sum(self):
        total, weight = weighted_sum([(1.0, 0.0), (0.0, 1.0)], [2.0, 0.5])
        assert total.tolist() == [2.0, 0.5]
        assert weight == 2.5

    def test_weighted_sum_empty(self):
        total, weight = weighted_sum([], [])
        assert total.size == 0
        assert weight == 0.0

    def test_weighted_sum_shape_mismatch_raises(self):
        with pytest.raises(VectorDimensionError):
            weighted_sum([(1.0, 0.0), (1.0, 0.0, 0.0)], [1.0, 1.0])
