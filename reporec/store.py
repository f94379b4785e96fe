"""Item factor store: the read-only embedding matrix and its identifier index."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np

from .types import LoadError

logger = logging.getLogger(__name__)

FACTORS_FILE = "item_factors.npy"
ITEMS_FILE = "items.csv"


class FactorStore:
    """Immutable item x factor matrix plus the identifier <-> index mapping.

    The Gram matrix ``G = X^T X`` is computed once here so that every
    preference solve only pays for its own feedback rows. All arrays are
    flagged read-only, so one instance can be shared by any number of threads.
    """

    def __init__(self, factors: np.ndarray, identifiers: Sequence[str]) -> None:
        matrix = np.array(factors, dtype=np.float64, order="C", copy=True)
        if matrix.ndim != 2:
            raise LoadError(f"Item factors must be 2-D, got shape {matrix.shape}")
        if len(identifiers) != matrix.shape[0]:
            raise LoadError(
                f"Identifier count ({len(identifiers)}) does not match factor rows ({matrix.shape[0]})"
            )

        index: dict[str, int] = {}
        for position, identifier in enumerate(identifiers):
            previous = index.get(identifier)
            if previous is not None:
                raise LoadError(
                    f"Duplicate identifier {identifier!r} on lines {previous + 1} and {position + 1}"
                )
            index[identifier] = position

        gram = matrix.T @ matrix
        matrix.setflags(write=False)
        gram.setflags(write=False)

        self._factors = matrix
        self._gram = gram
        self._identifiers = tuple(identifiers)
        self._index = index

    # ---- shape ----------------------------------------------------------------
    def size(self) -> int:
        return self._factors.shape[0]

    def dimension(self) -> int:
        return self._factors.shape[1]

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._index

    # ---- lookups ----------------------------------------------------------------
    def lookup(self, identifier: str) -> int | None:
        return self._index.get(identifier)

    def identifier_at(self, index: int) -> str:
        return self._identifiers[index]

    def vector(self, index: int) -> np.ndarray:
        """Return the (read-only) factor row for ``index``."""

        if not 0 <= index < self.size():
            raise IndexError(f"item index {index} out of range [0, {self.size()})")
        return self._factors[index]

    def resolve(self, identifiers: Iterable[str]) -> tuple[int, ...]:
        """Map identifiers to sorted unique indices, dropping unknown ones."""

        found: set[int] = set()
        missing = 0
        for identifier in identifiers:
            position = self._index.get(identifier)
            if position is None:
                missing += 1
            else:
                found.add(position)
        if missing:
            logger.debug("Dropped %d unknown identifier(s) during resolve", missing)
        return tuple(sorted(found))

    @property
    def factors(self) -> np.ndarray:
        return self._factors

    @property
    def gram(self) -> np.ndarray:
        return self._gram

    def __repr__(self) -> str:
        return f"FactorStore(items={self.size()}, factors={self.dimension()})"


def _read_factors(path: Path) -> np.ndarray:
    try:
        loaded = np.load(path, allow_pickle=False)
    except FileNotFoundError as exc:
        raise LoadError(f"Item factors missing: {path}") from exc
    except (OSError, ValueError, EOFError) as exc:
        raise LoadError(f"Unable to read item factors {path}: {exc}") from exc

    if not isinstance(loaded, np.ndarray):
        # .npz archives come back as a lazy NpzFile
        loaded.close()
        raise LoadError(f"Expected a single .npy array in {path}")
    if not np.issubdtype(loaded.dtype, np.floating):
        raise LoadError(f"Item factors must be floating point, got dtype {loaded.dtype}")
    if loaded.ndim != 2:
        raise LoadError(f"Item factors must be 2-D, got shape {loaded.shape}")
    return loaded


def _read_identifiers(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LoadError(f"Identifier list missing: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"Unable to read identifier list {path}: {exc}") from exc

    lines = text.split("\n")
    if lines[-1] == "":
        # trailing newline (or an empty file)
        lines.pop()
    return lines


def load_store(
    data_dir: Path | str,
    factors_file: str = FACTORS_FILE,
    items_file: str = ITEMS_FILE,
) -> FactorStore:
    """Load ``item_factors.npy`` and its parallel ``items.csv`` from ``data_dir``.

    Raises ``LoadError`` when either file is missing or unreadable, when the
    identifier count differs from the number of factor rows, or when an
    identifier appears twice.
    """

    root = Path(data_dir)
    started = time.perf_counter()
    factors = _read_factors(root / factors_file)
    identifiers = _read_identifiers(root / items_file)
    store = FactorStore(factors, identifiers)
    logger.info(
        "Loaded %d items x %d factors from %s in %.3fs",
        store.size(),
        store.dimension(),
        root,
        time.perf_counter() - started,
    )
    return store


__all__ = ["FACTORS_FILE", "ITEMS_FILE", "FactorStore", "load_store"]
