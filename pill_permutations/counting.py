"""Counting engine for daily pill-dose sequences.

A patient prescribed ``N`` pills takes either one or two pills per day. The
number of distinct day-by-day schedules that exhaust the prescription is the
number of compositions of ``N`` into parts drawn from ``{1, 2}``, which is the
``(N + 1)``-th Fibonacci number (``F(1) = F(2) = 1``).

The functions are iterative to avoid recursion depth limits and memoised so
that repeated invocations remain O(1) once a value has been computed.

Running the module as a script prints a single count as JSON or writes a table
of counts to disk.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Sequence

MIN_PILLS_PER_DAY = 1
MAX_PILLS_PER_DAY = 2


@dataclass(frozen=True)
class PermutationTable:
    """Counts for every prescription size from one pill up to ``max_pills``."""

    max_pills: int
    permutations: List[int]

    def to_dict(self) -> Dict[str, object]:
        """Return a serialisable representation keyed by pill count."""

        return {
            "max_pills": self.max_pills,
            "permutations": {
                str(pills): value
                for pills, value in enumerate(self.permutations, start=1)
            },
        }


def _validate_pills(n: int) -> None:
    if isinstance(n, bool) or not isinstance(n, int):
        raise TypeError("n must be an integer")
    if n < 0:
        raise ValueError("n must be non-negative")


@lru_cache(maxsize=None)
def _counts_through(n: int) -> tuple[int, ...]:
    """Return ``(count(0), ..., count(n))`` as an immutable tuple."""

    counts = [1]
    for total in range(1, n + 1):
        counts.append(
            sum(
                counts[total - step]
                for step in range(MIN_PILLS_PER_DAY, MAX_PILLS_PER_DAY + 1)
                if total - step >= 0
            )
        )
    return tuple(counts)


def count_permutations(n: int) -> int:
    """Return the number of ordered 1-or-2 pill schedules summing to *n*."""

    _validate_pills(n)
    return _counts_through(n)[n]


def permutation_table(max_pills: int) -> PermutationTable:
    """Return counts for one through *max_pills* pills."""

    _validate_pills(max_pills)
    return PermutationTable(
        max_pills=max_pills,
        permutations=list(_counts_through(max_pills)[1:]),
    )


def write_permutation_table(max_pills: int, output: Path, indent: int = 2) -> Path:
    """Write the permutation table to ``output`` as JSON."""

    table = permutation_table(max_pills)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(
        json.dumps(table.to_dict(), indent=indent, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    return output


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Count the 1-or-2 pills per day schedules for a prescription"
    )
    parser.add_argument(
        "--pills",
        type=int,
        help="Total number of prescribed pills to count schedules for",
    )
    parser.add_argument(
        "--table-output",
        type=Path,
        help="Write a JSON table of counts for 1..--max-pills to this path",
    )
    parser.add_argument(
        "--max-pills",
        type=int,
        default=47,
        help="Largest prescription included in the table (default: 47)",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="Indentation to use when serialising JSON (default: 2)",
    )
    return parser


def _run_cli(arguments: Sequence[str] | None = None) -> str:
    parser = _build_parser()
    args = parser.parse_args(arguments)
    if args.pills is None and args.table_output is None:
        parser.error("one of --pills or --table-output is required")
    try:
        if args.table_output is not None:
            path = write_permutation_table(
                args.max_pills, args.table_output, indent=args.indent
            )
            return f"Permutation table written to {path}"
        return json.dumps(
            {"pills": args.pills, "permutations": count_permutations(args.pills)}
        )
    except (TypeError, ValueError) as exc:  # pragma: no cover - argparse handles exit
        parser.error(str(exc))
        raise  # Unreachable but preserves typing for linters


def main() -> None:  # pragma: no cover - exercised via integration tests
    """Entry point when executing as ``python -m pill_permutations.counting``."""

    print(_run_cli())


if __name__ == "__main__":  # pragma: no cover - integration behaviour
    main()
