"""Helper script to run the labor report against the bundled sample dataset."""
from __future__ import annotations

import argparse

from otquote.cli import main


def _parse_args(argv: list[str] | None = None) -> tuple[argparse.Namespace, list[str]]:
    parser = argparse.ArgumentParser(description="Run the labor report offline with charts and workbook")
    parser.add_argument("--online", action="store_true", help="Query the ERP API instead of the local dataset.")
    return parser.parse_known_args(argv)


if __name__ == "__main__":  # pragma: no cover
    args, remaining = _parse_args()
    forward_args: list[str] = ["--charts", "png", "--workbook", *remaining]
    if not args.online:
        forward_args.append("--offline")
    raise SystemExit(main(forward_args))
