"""Top-N selection over every item in the store."""

from __future__ import annotations

from collections.abc import Collection

import numpy as np

from .store import FactorStore
from .types import Recommendation


def select_top(scores: np.ndarray, exclude: Collection[int], n: int) -> np.ndarray:
    """Return the indices of the ``n`` best scores outside ``exclude``.

    Highest score first; equal scores are ordered by lower index. Only the
    candidates that can reach the top ``n`` are sorted.
    """

    if n <= 0:
        return np.empty(0, dtype=np.intp)

    mask = np.ones(scores.shape[0], dtype=bool)
    if exclude:
        mask[np.fromiter(exclude, dtype=np.intp, count=len(exclude))] = False
    candidates = np.flatnonzero(mask)
    candidate_scores = scores[candidates]

    k = min(n, candidates.size)
    if k == 0:
        return np.empty(0, dtype=np.intp)
    if k < candidates.size:
        kth = np.argpartition(-candidate_scores, k - 1)[k - 1]
        # keep every candidate tied with the k-th score so ties resolve by index
        keep = candidate_scores >= candidate_scores[kth]
        candidates = candidates[keep]
        candidate_scores = candidate_scores[keep]

    # lexsort: last key is primary; candidates are already in ascending index order
    order = np.lexsort((candidates, -candidate_scores))[:k]
    return candidates[order]


def rank(
    store: FactorStore,
    preference: np.ndarray,
    feedback: Collection[int],
    n: int,
) -> list[Recommendation]:
    """Score all items against ``preference`` and return the top ``n`` not in ``feedback``."""

    if n <= 0:
        return []
    scores = store.factors @ preference
    top = select_top(scores, feedback, n)
    return [Recommendation(store.identifier_at(int(i)), float(scores[i])) for i in top]


__all__ = ["rank", "select_top"]
