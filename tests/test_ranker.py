from pathlib import Path
import sys

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reporec.ranker import rank, select_top
from reporec.store import FactorStore
from reporec.types import Recommendation


def test_select_top_orders_by_score():
    scores = np.array([0.1, 0.9, 0.5, 0.7, 0.3])
    assert select_top(scores, (), 3).tolist() == [1, 3, 2]


def test_select_top_excludes_feedback():
    scores = np.array([0.1, 0.9, 0.5, 0.7, 0.3])
    assert select_top(scores, {1, 3}, 2).tolist() == [2, 4]


def test_ties_break_towards_lower_index():
    scores = np.array([0.5, 1.0, 0.5, 1.0, 0.5, 0.5])
    assert select_top(scores, (), 4).tolist() == [1, 3, 0, 2]
    assert select_top(scores, {1}, 3).tolist() == [3, 0, 2]


def test_all_zero_scores_return_lowest_indices():
    scores = np.zeros(10)
    assert select_top(scores, {0, 4}, 5).tolist() == [1, 2, 3, 5, 6]


def test_count_is_capped_by_remaining_items():
    scores = np.array([3.0, 2.0, 1.0])
    assert select_top(scores, {0}, 10).tolist() == [1, 2]
    assert select_top(scores, {0, 1, 2}, 10).tolist() == []


def test_non_positive_count_is_empty():
    scores = np.array([3.0, 2.0, 1.0])
    assert select_top(scores, (), 0).size == 0
    assert select_top(scores, (), -2).size == 0


def test_partial_selection_agrees_with_full_sort():
    rng = np.random.RandomState(3)
    scores = np.round(rng.normal(size=500), 1)  # rounding forces plenty of ties
    exclude = set(rng.choice(500, size=40, replace=False).tolist())

    top = select_top(scores, exclude, 25).tolist()

    expected = sorted((i for i in range(500) if i not in exclude), key=lambda i: (-scores[i], i))[:25]
    assert top == expected


def test_rank_maps_indices_to_identifiers_with_scores():
    store = FactorStore(np.array([[1.0, 0.0], [0.0, 2.0], [3.0, 3.0]]), ["a/one", "b/two", "c/three"])
    preference = np.array([1.0, 0.5])

    recs = rank(store, preference, (0,), 5)

    assert recs == [Recommendation("c/three", 4.5), Recommendation("b/two", 1.0)]
    assert all(isinstance(rec.score, float) for rec in recs)


def test_rank_zero_count_is_empty():
    store = FactorStore(np.eye(3), ["a/a", "b/b", "c/c"])
    assert rank(store, np.ones(3), (), 0) == []
