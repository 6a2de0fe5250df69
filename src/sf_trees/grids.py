"""Candidate grids for integer hyperparameters."""
from __future__ import annotations

from typing import Mapping, Optional

import numpy as np
import pandas as pd
from scipy.stats import qmc

Range = tuple[int, int]


def _check_ranges(ranges: Mapping[str, Range]) -> None:
    if not ranges:
        raise ValueError("At least one parameter range is required")
    for name, (lo, hi) in ranges.items():
        if lo > hi:
            raise ValueError(f"Invalid range for {name}: ({lo}, {hi})")


def _label(grid: pd.DataFrame) -> pd.DataFrame:
    grid = grid.drop_duplicates().reset_index(drop=True)
    width = max(2, len(str(len(grid))))
    grid[".config"] = [f"Model{i + 1:0{width}d}" for i in range(len(grid))]
    return grid


def space_filling_grid(ranges: Mapping[str, Range], size: int = 20, seed: Optional[int] = None) -> pd.DataFrame:
    """Latin-hypercube sample of ``size`` integer candidates within ``ranges``.

    Duplicates produced by rounding are dropped, so fewer than ``size`` rows
    may come back for narrow ranges.
    """
    _check_ranges(ranges)
    if size < 1:
        raise ValueError(f"size must be positive, got {size}")

    names = list(ranges)
    lower = np.array([ranges[n][0] for n in names], dtype=float)
    upper = np.array([ranges[n][1] for n in names], dtype=float)

    sampler = qmc.LatinHypercube(d=len(names), seed=seed)
    unit = sampler.random(n=size)
    # stretch to [lo - 0.5, hi + 0.5] so the end points get a fair share after rounding
    scaled = lower - 0.5 + unit * (upper - lower + 1.0)
    values = np.clip(np.rint(scaled), lower, upper).astype(int)

    return _label(pd.DataFrame(values, columns=names))


def regular_grid(ranges: Mapping[str, Range], levels: int = 5) -> pd.DataFrame:
    """Evenly spaced integer levels per parameter, crossed; first parameter varies fastest."""
    _check_ranges(ranges)
    if levels < 1:
        raise ValueError(f"levels must be positive, got {levels}")

    names = list(ranges)
    axes = [
        np.unique(np.rint(np.linspace(lo, hi, levels)).astype(int))
        for lo, hi in (ranges[n] for n in names)
    ]
    index = pd.MultiIndex.from_product(axes[::-1], names=names[::-1])
    grid = index.to_frame(index=False)[names]
    return _label(grid)
