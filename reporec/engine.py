"""Recommendation entry point used by the service and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from .ranker import rank
from .solver import DEFAULT_CONFIDENCE, DEFAULT_REGULARIZATION, ImplicitSolver
from .store import FactorStore, load_store
from .types import EmptyFeedbackError, Recommendation

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class Recommender:
    """Resolve -> solve -> rank over a single loaded ``FactorStore``.

    Holds no per-request state; ``recommend`` may be called concurrently.
    """

    def __init__(
        self,
        store: FactorStore,
        confidence: float = DEFAULT_CONFIDENCE,
        regularization: float = DEFAULT_REGULARIZATION,
    ) -> None:
        self.store = store
        self.solver = ImplicitSolver(store, confidence, regularization)

    @classmethod
    def from_settings(cls, settings: Settings) -> Recommender:
        """Load the store described by ``settings``; raises ``LoadError``/``ConfigError``."""

        store = load_store(settings.data_dir, settings.factors_file, settings.items_file)
        return cls(store, settings.confidence, settings.regularization)

    def resolve(self, identifiers: Iterable[str]) -> tuple[int, ...]:
        return self.store.resolve(identifiers)

    def recommend_resolved(
        self, feedback: Sequence[int], n: int, received: int = 0
    ) -> list[Recommendation]:
        """Recommend from an already resolved feedback set.

        ``received`` is how many identifiers the caller originally passed; it
        only describes an empty feedback set.
        """

        if n <= 0:
            return []
        if not feedback:
            raise EmptyFeedbackError(received=received)
        preference = self.solver.solve(feedback)
        return rank(self.store, preference, feedback, n)

    def recommend(self, feedback_identifiers: Iterable[str], n: int) -> list[Recommendation]:
        """Return up to ``n`` repositories for a caller who interacted with ``feedback_identifiers``.

        Unknown identifiers are ignored. ``n <= 0`` always yields ``[]``. If
        nothing resolves, ``EmptyFeedbackError`` is raised whether the caller
        passed no identifiers or only unknown ones.
        """

        n = int(n)
        if n <= 0:
            return []
        identifiers = list(feedback_identifiers)
        feedback = self.store.resolve(identifiers)
        logger.debug("Recommending %d item(s) from %d/%d resolved", n, len(feedback), len(identifiers))
        return self.recommend_resolved(feedback, n, received=len(identifiers))


__all__ = ["Recommender"]
