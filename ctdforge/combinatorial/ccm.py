"""Measure t-way combinatorial coverage of a CSV of rows against a model file.

This is the coverage tool the coverage computer shells out to. It reads an
ACTS-style model::

    [System]
    Name: pkg.mod.Cart::add(int,str)

    [Parameter]
    p0 (enum) : v0, v1
    p1 (enum) : v0, v1

and a CSV whose header names the parameters and whose rows hold one value
token per parameter. It prints ``Total <t>-way coverage: <fraction>``.

Usage::

    python -m ctdforge.combinatorial.ccm --inputfile rows.csv --model model.txt --tway 2
"""

from __future__ import annotations

import csv
import re
import sys
from pathlib import Path

import click

from ctdforge.combinatorial.dimensions import Combination, Dimension, DimensionSpace
from ctdforge.combinatorial.generator import CoveringArrayGenerator

_PARAM_LINE = re.compile(r"^\s*(\S+)\s*\(enum\)\s*:\s*(.*)$")


def read_model(path: Path) -> DimensionSpace:
    """Parse the ``[Parameter]`` section of a model file."""
    dimensions: list[Dimension] = []
    in_parameters = False
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if line.startswith("["):
            in_parameters = line == "[Parameter]"
            continue
        if not in_parameters or not line:
            continue
        match = _PARAM_LINE.match(line)
        if match is None:
            raise ValueError(f"Malformed parameter line: {line!r}")
        values = [v.strip() for v in match.group(2).split(",") if v.strip()]
        dimensions.append(Dimension(match.group(1), values))
    if not dimensions:
        raise ValueError(f"No parameters in model file {path}")
    return DimensionSpace(dimensions)


def read_rows(path: Path, space: DimensionSpace) -> list[Combination]:
    names = space.dimension_names
    with open(path, newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None or [h.strip() for h in header] != names:
            raise ValueError(f"CSV header {header!r} does not match model parameters {names!r}")
        return [
            Combination(dict(zip(names, (v.strip() for v in row))))
            for row in reader
            if row
        ]


@click.command()
@click.option("--inputfile", "input_file", required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--model", "model_file", required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--tway", "strength", required=True, type=int)
def main(input_file: Path, model_file: Path, strength: int) -> None:
    """Print the t-way coverage of INPUTFILE rows against MODEL."""
    try:
        space = read_model(model_file)
        rows = read_rows(input_file, space)
    except (OSError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    t = max(1, min(strength, len(space.dimensions)))
    stats = CoveringArrayGenerator(space).coverage_stats(rows, strength=t)
    click.echo(f"Rows: {stats.test_count}")
    click.echo(f"Covered {t}-tuples: {stats.covered_tuples}/{stats.total_tuples}")
    click.echo(f"Total {t}-way coverage: {stats.fraction:.6f}")


if __name__ == "__main__":
    main()
