"""
Analysis helpers for finished GA runs.

Ranks the per-generation best layouts, extracts the fitness history and
counts how often each cell was used. Plotting is left to the caller.
"""

from typing import Dict, List

import numpy as np

from .data_models import FitnessTable, GAResult


RANKING_METRICS = ('energy', 'efficiency')


def best_layouts(result: GAResult, best: int = 3, by: str = "energy") -> List[FitnessTable]:
    """
    Best distinct layouts of a run.

    The best-energy (or best-efficiency) table of every generation is
    ranked by that metric and layouts occupying the same set of cells are
    reported once. If fewer distinct layouts than ``best`` exist, only the
    better half of them (at least one) is returned.

    Args:
        result: Finished run
        best: Number of layouts wanted
        by: "energy" or "efficiency"

    Returns:
        FitnessTables ordered from best to worst

    Raises:
        ValueError: If ``by`` is unknown or ``best`` is not positive
    """
    by = by.lower()
    if by not in RANKING_METRICS:
        raise ValueError(f"Unknown ranking metric: {by}. Must be one of {list(RANKING_METRICS)}")
    if best < 1:
        raise ValueError(f"'best' must be positive, got {best}")

    if by == 'energy':
        tables = [record.best_energy for record in result.generations]
        ordered = sorted(tables, key=lambda table: -table.energy_value)
    else:
        tables = [record.best_efficiency for record in result.generations]
        ordered = sorted(tables, key=lambda table: -table.efficiency_value)

    unique = []
    seen = set()
    for table in ordered:
        layout = frozenset(table.rect_id.tolist())
        if layout in seen:
            continue
        seen.add(layout)
        unique.append(table)

    if len(unique) < best:
        best = max(1, len(unique) // 2)

    return unique[:best]


def fitness_history(result: GAResult) -> List[Dict]:
    """
    Per-generation fitness statistics and control values.

    Returns:
        One dict per generation with 'generation', 'max', 'mean', 'min',
        'n_individuals', 'selection_fraction', 'crossover_rate',
        'mutation_rate', 'best_energy' and 'best_efficiency'
    """
    return [
        {
            'generation': record.generation,
            'max': record.fitness_max,
            'mean': record.fitness_mean,
            'min': record.fitness_min,
            'n_individuals': record.n_individuals,
            'selection_fraction': record.selection_fraction,
            'crossover_rate': record.crossover_rate,
            'mutation_rate': record.mutation_rate,
            'best_energy': record.best_energy.energy_value,
            'best_efficiency': record.best_efficiency.efficiency_value,
        }
        for record in result.generations
    ]


def cell_heat(result: GAResult) -> np.ndarray:
    """
    How often each cell was occupied across all generations of a run.

    Returns:
        Integer array of length n_grids; entry ``i`` belongs to cell id ``i + 1``
    """
    counts = [record.cell_counts for record in result.generations if record.cell_counts is not None]
    if not counts:
        n_grids = int(result.metadata.get('n_grids', 0))
        return np.zeros(n_grids, dtype=np.int64)
    return np.sum(counts, axis=0).astype(np.int64)
