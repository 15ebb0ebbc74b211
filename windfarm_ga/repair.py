"""
Turbine-count repair for the wind farm GA.

Crossover and mutation change the number of turbines in a layout. The
repair step restores the exact count, either uniformly at random or with
probabilities derived from the wake loss and park fitness that every cell
showed across the whole current generation.
"""

from dataclasses import dataclass
import logging
from typing import List, Optional, Tuple

import numpy as np

from .data_models import FitnessTable


logger = logging.getLogger(__name__)


DEFAULT_EXPONENT = 0.5


@dataclass(frozen=True)
class CellStatistics:
    """
    Per-cell means over all evaluated layouts of one generation.

    Attributes:
        cell_ids: Sorted 1-based ids of cells occupied by any layout
        park_fitness: Mean Parkfitness of the layouts using each cell
        wake_loss: Mean AbschGesamt of the turbines on each cell
    """
    cell_ids: np.ndarray
    park_fitness: np.ndarray
    wake_loss: np.ndarray

    def __len__(self) -> int:
        return len(self.cell_ids)

    def locate(self, cells: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find cells in the table.

        Returns:
            Tuple of (boolean mask of cells present, row index of each present cell)
        """
        present = np.isin(cells, self.cell_ids)
        rows = np.searchsorted(self.cell_ids, cells[present])
        return present, rows


def aggregate_cell_statistics(table: FitnessTable) -> CellStatistics:
    """
    Group a generation-wide fitness table by cell and average it.

    Args:
        table: Concatenated fitness tables of every individual in the generation

    Returns:
        CellStatistics with mean Parkfitness and AbschGesamt per cell
    """
    cell_ids, means = table.group_mean_by_cell(("Parkfitness", "AbschGesamt"))
    return CellStatistics(
        cell_ids=cell_ids,
        park_fitness=means["Parkfitness"],
        wake_loss=means["AbschGesamt"],
    )


def _normalize(values: np.ndarray) -> np.ndarray:
    # maximum maps to 1, smaller values move towards 2
    top = np.max(values)
    return 1.0 + (top - values) / (1.0 + top)


def deletion_weights(
    occupied: np.ndarray,
    stats: CellStatistics,
    k: float = DEFAULT_EXPONENT
) -> np.ndarray:
    """
    Weights for choosing which turbines to remove.

    High wake loss and low park fitness make a turbine more likely to be
    removed. Turbines on cells the generation never evaluated get the mean
    wake loss of all evaluated cells as their weight.

    Args:
        occupied: 1-based ids of the occupied cells
        stats: Generation-wide cell statistics
        k: Exponent applied to the park fitness term

    Returns:
        Weight per occupied cell, aligned with ``occupied``
    """
    occupied = np.asarray(occupied, dtype=np.int64)

    if len(stats) == 0:
        return np.ones(len(occupied))

    weights = np.full(len(occupied), float(np.mean(stats.wake_loss)))
    present, rows = stats.locate(occupied)

    if rows.size:
        npt = _normalize(stats.wake_loss[rows])
        npt0 = _normalize(stats.park_fitness[rows])
        weights[present] = npt0 ** k / npt

    return weights


def addition_weights(
    n_grids: int,
    occupied: np.ndarray,
    stats: CellStatistics,
    k: float = DEFAULT_EXPONENT
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Candidate cells and weights for placing new turbines.

    Low wake loss and high park fitness make a free cell more likely to be
    chosen. The normalization runs over every evaluated cell of the grid;
    free cells never evaluated get the smallest weight seen.

    Args:
        n_grids: Number of grid cells
        occupied: 1-based ids of the occupied cells
        stats: Generation-wide cell statistics
        k: Exponent applied to the park fitness term

    Returns:
        Tuple of (1-based ids of the free cells, weight per free cell)
    """
    all_cells = np.arange(1, n_grids + 1)
    weights = np.ones(n_grids)

    in_grid = (stats.cell_ids >= 1) & (stats.cell_ids <= n_grids)
    known_ids = stats.cell_ids[in_grid]

    if known_ids.size:
        npt1 = _normalize(stats.wake_loss[in_grid])
        npt2 = _normalize(stats.park_fitness[in_grid]) ** k
        known = npt1 / npt2
        weights[:] = known.min()
        weights[known_ids - 1] = known

    free = ~np.isin(all_cells, occupied)
    return all_cells[free], weights[free]


def _sample_cells(
    cells: np.ndarray,
    count: int,
    weights: Optional[np.ndarray],
    rng: np.random.Generator
) -> np.ndarray:
    if weights is None:
        chosen = rng.choice(cells, size=count, replace=False)
    else:
        # sampling without replacement needs a non-zero weight on every candidate
        weights = np.clip(np.nan_to_num(weights, nan=0.0), np.finfo(float).tiny, None)
        chosen = rng.choice(cells, size=count, replace=False, p=weights / weights.sum())
    return np.sort(chosen)


def repair_individual(
    bits: np.ndarray,
    n_turbines: int,
    stats: CellStatistics,
    trim_force: bool,
    rng: np.random.Generator,
    k: float = DEFAULT_EXPONENT
) -> Tuple[np.ndarray, str]:
    """
    Restore the turbine count of a single layout.

    Args:
        bits: Layout bit vector
        n_turbines: Required number of turbines
        stats: Generation-wide cell statistics
        trim_force: Weighted sampling if True, uniform sampling otherwise
        rng: Random number generator
        k: Exponent applied to the park fitness term

    Returns:
        Tuple of (repaired bit vector, repair note)
    """
    repaired = np.array(bits, dtype=np.uint8, copy=True)
    n_grids = repaired.shape[0]
    occupied = np.flatnonzero(repaired) + 1
    surplus = len(occupied) - n_turbines

    if surplus == 0:
        return repaired, "unchanged"

    if surplus > 0:
        weights = deletion_weights(occupied, stats, k) if trim_force else None
        removed = _sample_cells(occupied, surplus, weights, rng)
        repaired[removed - 1] = 0
        return repaired, f"removed {surplus} turbines at cells {removed.tolist()}"

    candidates, candidate_weights = addition_weights(n_grids, occupied, stats, k)
    weights = candidate_weights if trim_force else None
    added = _sample_cells(candidates, -surplus, weights, rng)
    repaired[added - 1] = 1
    return repaired, f"added {-surplus} turbines at cells {added.tolist()}"


def repair_turbine_count(
    offspring: np.ndarray,
    n_turbines: int,
    generation: FitnessTable,
    n_grids: int,
    trim_force: bool,
    rng: np.random.Generator,
    k: float = DEFAULT_EXPONENT
) -> Tuple[np.ndarray, List[str]]:
    """
    Adjust every layout in a matrix to exactly ``n_turbines`` turbines.

    The per-cell statistics are computed once from the generation-wide table
    and shared read-only by all layouts. Layouts are repaired column by
    column, so random draws follow column order.

    Args:
        offspring: (n_grids, n_offspring) binary matrix after mutation
        n_turbines: Required number of turbines per layout
        generation: Fitness tables of every individual of the current generation
        n_grids: Number of grid cells
        trim_force: Weighted (True) or uniform (False) repair
        rng: Random number generator
        k: Exponent applied to the park fitness term

    Returns:
        Tuple of (repaired matrix, repair notes)

    Raises:
        ValueError: If n_turbines exceeds n_grids or the matrix has the wrong height
    """
    if n_turbines > n_grids:
        raise ValueError(
            f"Cannot place {n_turbines} turbines on {n_grids} grid cells"
        )

    offspring = np.asarray(offspring, dtype=np.uint8)
    if offspring.ndim != 2 or offspring.shape[0] != n_grids:
        raise ValueError(
            f"Expected a matrix with {n_grids} rows, got shape {offspring.shape}"
        )

    stats = aggregate_cell_statistics(generation)
    repaired = np.empty_like(offspring)
    notes = [
        f"repair_turbine_count: {offspring.shape[1]} layouts, target={n_turbines}, "
        f"trim_force={trim_force}, {len(stats)} cells with statistics"
    ]

    changed = 0
    for column in range(offspring.shape[1]):
        repaired[:, column], note = repair_individual(
            offspring[:, column], n_turbines, stats, trim_force, rng, k
        )
        if note != "unchanged":
            changed += 1
            notes.append(f"  layout {column}: {note}")

    notes.append(f"repair_turbine_count: adjusted {changed} of {offspring.shape[1]} layouts")
    logger.debug(notes[-1])

    violations = validate_turbine_counts(repaired, n_turbines)
    if violations:
        notes.append(
            f"VALIDATION WARNING: {len(violations)} layouts still miss the turbine count"
        )

    return repaired, notes


def validate_turbine_counts(matrix: np.ndarray, n_turbines: int) -> List[int]:
    """Column indices whose turbine count differs from ``n_turbines``."""
    counts = np.asarray(matrix).sum(axis=0)
    return [int(i) for i in np.flatnonzero(counts != n_turbines)]
