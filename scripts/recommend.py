"""Print repository recommendations for a list of starred repositories."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Iterable
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reporec.config import load_settings  # noqa: E402
from reporec.engine import Recommender  # noqa: E402
from reporec.types import ConfigError, EmptyFeedbackError, LoadError  # noqa: E402


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("repositories", nargs="*", help="Starred repositories, e.g. tensorflow/tensorflow")
    parser.add_argument("--data-dir", type=Path, help="Directory holding item_factors.npy and items.csv")
    parser.add_argument("-n", type=int, help="Number of recommendations")
    parser.add_argument("--confidence", type=float, help="Confidence weight for starred repositories")
    parser.add_argument("--regularization", type=float, help="Ridge penalty of the preference solve")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load the artifacts and print a summary of the factor store.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"))

    overrides = {
        key: value
        for key, value in {
            "data_dir": args.data_dir,
            "confidence": args.confidence,
            "regularization": args.regularization,
        }.items()
        if value is not None
    }

    try:
        settings = load_settings(**overrides)
        recommender = Recommender.from_settings(settings)
    except (LoadError, ConfigError) as exc:
        print(f"Unable to load model: {exc}", file=sys.stderr)
        return 1

    store = recommender.store
    if args.check:
        summary = {
            "data_dir": str(settings.data_dir),
            "items": store.size(),
            "factors": store.dimension(),
            "first": store.identifier_at(0) if store.size() else None,
        }
        print(json.dumps(summary, indent=2))
        return 0

    try:
        n = settings.default_n if args.n is None else args.n
        recs = recommender.recommend(args.repositories, n)
    except EmptyFeedbackError as exc:
        print(f"None of the {exc.received} repositories given are known to the model.", file=sys.stderr)
        return 2

    print(json.dumps([rec.as_dict() for rec in recs], indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
