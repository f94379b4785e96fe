from pathlib import Path
import sys

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reporec.store import FactorStore, load_store
from reporec.types import LoadError

REPOS = ["tensorflow/tensorflow", "BVLC/caffe", "pytorch/pytorch", "numpy/numpy", "scipy/scipy"]


def _write_artifacts(tmp_path: Path, factors: np.ndarray, names: list[str], trailing_newline: bool = True) -> Path:
    np.save(tmp_path / "item_factors.npy", factors)
    text = "\n".join(names) + ("\n" if trailing_newline else "")
    (tmp_path / "items.csv").write_text(text, encoding="utf-8")
    return tmp_path


def _factors(n: int = 5, f: int = 3) -> np.ndarray:
    return np.random.RandomState(7).normal(size=(n, f))


def test_load_reports_shape_and_round_trips_identifiers(tmp_path):
    factors = _factors()
    store = load_store(_write_artifacts(tmp_path, factors, REPOS))

    assert store.size() == len(REPOS)
    assert store.dimension() == factors.shape[1]
    for i in range(store.size()):
        assert store.lookup(store.identifier_at(i)) == i
    np.testing.assert_array_equal(store.vector(2), factors[2])


def test_gram_matrix_is_precomputed(tmp_path):
    factors = _factors()
    store = load_store(_write_artifacts(tmp_path, factors, REPOS))

    np.testing.assert_allclose(store.gram, factors.T @ factors)
    assert store.gram.shape == (3, 3)


def test_store_arrays_are_read_only(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors(), REPOS))

    with pytest.raises(ValueError):
        store.vector(0)[0] = 1.0
    with pytest.raises(ValueError):
        store.gram[0, 0] = 1.0


def test_store_does_not_alias_caller_array():
    factors = _factors()
    store = FactorStore(factors, REPOS)
    factors[0, 0] = 1e6
    assert store.vector(0)[0] != 1e6


def test_last_line_without_newline_is_accepted(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors(), REPOS, trailing_newline=False))
    assert store.identifier_at(4) == "scipy/scipy"


def test_identifiers_keep_surrounding_whitespace(tmp_path):
    names = [" spaced/repo ", "a/b", "c/d", "e/f", "g/h"]
    store = load_store(_write_artifacts(tmp_path, _factors(), names))
    assert store.lookup(" spaced/repo ") == 0
    assert store.lookup("spaced/repo") is None


def test_unknown_identifier_lookup_is_none(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors(), REPOS))
    assert store.lookup("nobody/nothing") is None
    assert "nobody/nothing" not in store
    assert "numpy/numpy" in store


def test_resolve_drops_unknown_and_deduplicates(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors(), REPOS))
    resolved = store.resolve(["scipy/scipy", "ghost/repo", "BVLC/caffe", "scipy/scipy"])
    assert resolved == (1, 4)


def test_vector_rejects_out_of_range(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors(), REPOS))
    with pytest.raises(IndexError):
        store.vector(5)
    with pytest.raises(IndexError):
        store.vector(-1)


def test_identifier_file_one_line_short_fails(tmp_path):
    _write_artifacts(tmp_path, _factors(), REPOS[:-1])
    with pytest.raises(LoadError, match="does not match"):
        load_store(tmp_path)


def test_identifier_file_one_line_long_fails(tmp_path):
    _write_artifacts(tmp_path, _factors(), REPOS + ["extra/repo"])
    with pytest.raises(LoadError):
        load_store(tmp_path)


def test_duplicate_identifiers_fail(tmp_path):
    names = ["a/b", "c/d", "a/b", "e/f", "g/h"]
    _write_artifacts(tmp_path, _factors(), names)
    with pytest.raises(LoadError, match="Duplicate identifier 'a/b' on lines 1 and 3"):
        load_store(tmp_path)


def test_missing_factor_file_fails(tmp_path):
    (tmp_path / "items.csv").write_text("a/b\n", encoding="utf-8")
    with pytest.raises(LoadError, match="Item factors missing"):
        load_store(tmp_path)


def test_missing_identifier_file_fails(tmp_path):
    np.save(tmp_path / "item_factors.npy", _factors())
    with pytest.raises(LoadError, match="Identifier list missing"):
        load_store(tmp_path)


def test_corrupt_factor_file_fails(tmp_path):
    (tmp_path / "item_factors.npy").write_bytes(b"definitely not numpy")
    (tmp_path / "items.csv").write_text("a/b\n", encoding="utf-8")
    with pytest.raises(LoadError):
        load_store(tmp_path)


def test_non_float_factor_file_fails(tmp_path):
    _write_artifacts(tmp_path, np.arange(15).reshape(5, 3), REPOS)
    with pytest.raises(LoadError, match="floating point"):
        load_store(tmp_path)


def test_one_dimensional_factor_file_fails(tmp_path):
    _write_artifacts(tmp_path, np.ones(5), REPOS)
    with pytest.raises(LoadError, match="2-D"):
        load_store(tmp_path)


def test_float32_factors_are_widened(tmp_path):
    store = load_store(_write_artifacts(tmp_path, _factors().astype(np.float32), REPOS))
    assert store.factors.dtype == np.float64


def test_custom_file_names(tmp_path):
    np.save(tmp_path / "v2.npy", _factors(2, 4))
    (tmp_path / "repos.txt").write_text("x/y\nz/w\n", encoding="utf-8")
    store = load_store(tmp_path, factors_file="v2.npy", items_file="repos.txt")
    assert (store.size(), store.dimension()) == (2, 4)
