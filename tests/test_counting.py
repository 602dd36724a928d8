from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from pill_permutations.counting import (
    PermutationTable,
    _run_cli,
    count_permutations,
    permutation_table,
    write_permutation_table,
)


def _fibonacci(index: int) -> int:
    previous, current = 0, 1
    for _ in range(index - 1):
        previous, current = current, previous + current
    return current


def test_small_counts_match_expected() -> None:
    assert [count_permutations(n) for n in range(0, 6)] == [1, 1, 2, 3, 5, 8]


@pytest.mark.parametrize("pills", range(1, 48))
def test_count_is_next_fibonacci_number(pills: int) -> None:
    assert count_permutations(pills) == _fibonacci(pills + 1)


def test_count_at_threshold_and_ceiling() -> None:
    assert count_permutations(43) == 701408733
    assert count_permutations(47) == 4807526976


def test_count_is_deterministic() -> None:
    assert count_permutations(30) == count_permutations(30) == 1346269


def test_large_counts_do_not_recurse() -> None:
    assert count_permutations(5000) == _fibonacci(5001)


@pytest.mark.parametrize("value", [1.0, "3", True, None])
def test_rejects_non_integers(value: object) -> None:
    with pytest.raises(TypeError):
        count_permutations(value)  # type: ignore[arg-type]


def test_rejects_negative() -> None:
    with pytest.raises(ValueError):
        count_permutations(-1)


def test_permutation_table_structure() -> None:
    table = permutation_table(5)
    assert isinstance(table, PermutationTable)
    assert table.permutations == [1, 2, 3, 5, 8]
    assert table.to_dict() == {
        "max_pills": 5,
        "permutations": {"1": 1, "2": 2, "3": 3, "4": 5, "5": 8},
    }


def test_write_permutation_table(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "table.json"
    path = write_permutation_table(4, target, indent=0)
    assert path == target
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["permutations"] == {"1": 1, "2": 2, "3": 3, "4": 5}


def test_cli_prints_single_count() -> None:
    assert json.loads(_run_cli(["--pills", "10"])) == {
        "pills": 10,
        "permutations": 89,
    }


def test_cli_requires_an_action() -> None:
    with pytest.raises(SystemExit):
        _run_cli([])


@pytest.mark.integration
def test_module_execution(tmp_path: Path) -> None:
    """Execute the module as a script to ensure CLI wiring functions."""

    output = tmp_path / "cli.json"
    subprocess.run(  # noqa: S603  # trusted input
        [
            sys.executable,
            "-m",
            "pill_permutations.counting",
            "--table-output",
            str(output),
            "--max-pills",
            "6",
        ],
        check=True,
        cwd=Path(__file__).parents[1],
    )
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["permutations"]["6"] == 13
