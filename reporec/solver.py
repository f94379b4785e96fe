"""Per-request preference solve for implicit (positive-only) feedback."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from .store import FactorStore
from .types import ConfigError

logger = logging.getLogger(__name__)

# ---- hyperparams (overridable through settings) ----
DEFAULT_CONFIDENCE = 3.0
DEFAULT_REGULARIZATION = 0.001


def _require_positive(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive finite number, got {value!r}")
    return value


class ImplicitSolver:
    """Confidence-weighted ridge regression of binary labels onto item factors.

    For a feedback set ``S`` the preference vector ``u`` solves::

        (G + c * sum_{i in S} x_i x_i^T + lambda * I) u = c * sum_{i in S} x_i

    where ``G`` is the store's Gram matrix. The left-hand side is symmetric
    positive definite for ``lambda > 0`` and is factorized with Cholesky.
    """

    def __init__(
        self,
        store: FactorStore,
        confidence: float = DEFAULT_CONFIDENCE,
        regularization: float = DEFAULT_REGULARIZATION,
    ) -> None:
        self.confidence = _require_positive("confidence", confidence)
        self.regularization = _require_positive("regularization", regularization)
        if store.dimension() <= 0:
            raise ConfigError(f"factor dimension must be positive, got {store.dimension()}")

        self._store = store
        base = store.gram + self.regularization * np.eye(store.dimension())
        base.setflags(write=False)
        self._base = base

    def solve(self, feedback: Sequence[int]) -> np.ndarray:
        """Return a fresh preference vector for the item indices in ``feedback``."""

        dimension = self._store.dimension()
        indices = np.unique(np.asarray(feedback, dtype=np.intp))
        if indices.size == 0:
            return np.zeros(dimension)
        if indices[0] < 0 or indices[-1] >= self._store.size():
            raise IndexError(f"feedback indices out of range [0, {self._store.size()})")

        seen = self._store.factors[indices]
        lhs = self._base + self.confidence * (seen.T @ seen)
        rhs = self.confidence * seen.sum(axis=0)
        factor = cho_factor(lhs, lower=True, overwrite_a=True)
        preference = cho_solve(factor, rhs)
        logger.debug("Solved preference vector from %d feedback item(s)", indices.size)
        return preference


__all__ = ["DEFAULT_CONFIDENCE", "DEFAULT_REGULARIZATION", "ImplicitSolver"]
