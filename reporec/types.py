"""Result type and error taxonomy shared by the recommendation core."""

from __future__ import annotations

from typing import NamedTuple


class Recommendation(NamedTuple):
    """A recommended repository and its preference score."""

    repository: str
    score: float

    def as_dict(self) -> dict[str, str | float]:
        return {"repository": self.repository, "score": float(self.score)}


class LoadError(RuntimeError):
    """Factor artifacts are missing, corrupt or inconsistent with each other."""


class ConfigError(ValueError):
    """Hyperparameters or settings are invalid; raised before serving."""


class EmptyFeedbackError(LookupError):
    """None of the supplied identifiers resolved to a known repository.

    Recoverable: it concerns a single request and never affects the store.
    ``received`` is how many identifiers the caller passed in.
    """

    def __init__(self, received: int) -> None:
        super().__init__(f"no usable feedback among {received} identifier(s)")
        self.received = received


__all__ = ["ConfigError", "EmptyFeedbackError", "LoadError", "Recommendation"]
