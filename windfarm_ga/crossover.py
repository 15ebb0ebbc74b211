"""
Crossover operators for the wind farm GA.

Parent layouts are cut into contiguous segments (equal-interval or random
cut points) and every offspring inherits each segment from one parent or
the other. The number of offspring per pair is bounded by ``uplimit``.
"""

import logging
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .config import CROSSOVER_MODES
from .data_models import Individual


logger = logging.getLogger(__name__)


def segment_count(u: float, n_grids: int = None) -> int:
    """
    Number of segments for crossover rate ``u``.

    ``ceil(u)`` segments, e.g. 1.1 -> 2, 2.5 -> 3, 4.9 -> 5. Never more
    segments than cells when ``n_grids`` is given.

    Raises:
        ValueError: If u is not positive
    """
    if u <= 0:
        raise ValueError(f"Crossover rate must be positive, got {u}")

    segments = max(1, int(math.ceil(u)))
    if n_grids is not None:
        segments = min(segments, n_grids)
    return segments


def cut_points(
    n_grids: int,
    segments: int,
    mode: str,
    rng: np.random.Generator
) -> np.ndarray:
    """
    Positions where the bitstring is cut.

    A cut at position ``c`` starts a new segment at bit index ``c``.

    Args:
        n_grids: Bitstring length
        segments: Number of segments (cut points = segments - 1)
        mode: "EQU" for equal intervals, "RAN" for random distinct positions
        rng: Random number generator (only drawn from in RAN mode)

    Returns:
        Sorted int array of length segments - 1 with values in [1, n_grids - 1]

    Raises:
        ValueError: If mode is unknown or segments exceeds n_grids
    """
    mode = mode.upper()
    if mode not in CROSSOVER_MODES:
        raise ValueError(f"Unknown crossover mode: {mode}")

    if not 1 <= segments <= n_grids:
        raise ValueError(f"Cannot cut {n_grids} cells into {segments} segments")

    n_cuts = segments - 1
    if n_cuts == 0:
        return np.empty(0, dtype=np.int64)

    if mode == 'EQU':
        return np.array([k * n_grids // segments for k in range(1, segments)], dtype=np.int64)

    cuts = rng.choice(np.arange(1, n_grids), size=n_cuts, replace=False)
    return np.sort(cuts).astype(np.int64)


def segment_labels(n_grids: int, cuts: np.ndarray) -> np.ndarray:
    """Segment index of every bit position."""
    return np.searchsorted(cuts, np.arange(n_grids), side='right')


def combination_indices(
    segments: int,
    uplimit: int,
    rng: np.random.Generator,
    exclude_parent_clones: bool = True
) -> np.ndarray:
    """
    Choose which parent-source combinations become offspring.

    Combination ``k`` takes segment ``j`` from parent B when bit ``j`` of
    ``k`` is set, otherwise from parent A. ``0`` and ``2**segments - 1``
    reproduce the parents and are skipped when ``exclude_parent_clones``.
    If more combinations exist than ``uplimit`` they are subsampled without
    replacement.

    Returns:
        Ascending int64 array of combination indices
    """
    total = 2 ** segments
    first, last = (1, total - 1) if exclude_parent_clones else (0, total)
    available = max(0, last - first)

    if available <= uplimit:
        return np.arange(first, first + available, dtype=np.int64)

    chosen = rng.choice(available, size=uplimit, replace=False)
    return np.sort(chosen).astype(np.int64) + first


def crossover_pair(
    parent_a: np.ndarray,
    parent_b: np.ndarray,
    u: float,
    uplimit: int,
    mode: str,
    rng: np.random.Generator,
    exclude_parent_clones: bool = True
) -> Tuple[np.ndarray, Dict]:
    """
    Recombine two parent layouts into a bounded set of offspring.

    Args:
        parent_a: First parent bit vector (length n_grids)
        parent_b: Second parent bit vector (length n_grids)
        u: Crossover rate; ceil(u) segments
        uplimit: Maximum number of offspring
        mode: "EQU" or "RAN" cut point placement
        rng: Random number generator
        exclude_parent_clones: Skip the two combinations equal to the parents

    Returns:
        Tuple of (offspring, info) where offspring is a (n_grids, n_offspring)
        uint8 matrix with one offspring per column and info holds
        'segments', 'cut_points' and 'combinations'

    Raises:
        ValueError: If mode is unknown or the parents differ in length
    """
    mode = mode.upper()
    if mode not in CROSSOVER_MODES:
        raise ValueError(f"Unknown crossover mode: {mode}")

    parent_a = np.asarray(parent_a, dtype=np.uint8)
    parent_b = np.asarray(parent_b, dtype=np.uint8)
    if parent_a.shape != parent_b.shape or parent_a.ndim != 1:
        raise ValueError(
            f"Parents must be vectors of equal length, got {parent_a.shape} and {parent_b.shape}"
        )

    n_grids = parent_a.shape[0]
    segments = segment_count(u, n_grids)
    cuts = cut_points(n_grids, segments, mode, rng)
    combinations = combination_indices(segments, uplimit, rng, exclude_parent_clones)

    # bit j of combination k says whether segment j comes from parent B
    labels = segment_labels(n_grids, cuts).astype(np.int64)
    from_b = (combinations[np.newaxis, :] >> labels[:, np.newaxis]) & 1

    offspring = np.empty((n_grids, len(combinations)), dtype=np.uint8)
    np.copyto(offspring, np.where(from_b == 1, parent_b[:, np.newaxis], parent_a[:, np.newaxis]))

    info = {
        'segments': segments,
        'cut_points': cuts.tolist(),
        'combinations': combinations.tolist(),
    }

    return offspring, info


def crossover_population(
    pairs: Sequence[Tuple[Individual, Individual]],
    u: float,
    uplimit: int,
    mode: str,
    rng: np.random.Generator,
    exclude_parent_clones: bool = True
) -> Tuple[np.ndarray, List[Tuple[str, str]], List[str]]:
    """
    Apply crossover to every parent pair and bound the offspring pool.

    Each pair yields at most ``uplimit`` offspring; if the pooled offspring
    of all pairs exceed ``uplimit`` too, the pool is subsampled without
    replacement.

    Args:
        pairs: Parent pairs
        u: Crossover rate
        uplimit: Maximum number of offspring per pair and in total
        mode: "EQU" or "RAN"
        rng: Random number generator
        exclude_parent_clones: Skip offspring identical to a parent

    Returns:
        Tuple of (offspring matrix, parent ids per offspring column, notes)
    """
    if not pairs:
        raise ValueError("Crossover needs at least one parent pair")

    n_grids = pairs[0][0].n_grids
    segments = segment_count(u, n_grids)
    total = 2 ** segments - (2 if exclude_parent_clones else 0)
    per_pair = max(0, min(total, uplimit))

    pool = np.empty((n_grids, per_pair * len(pairs)), dtype=np.uint8)
    origins = []
    notes = []

    for index, (parent_a, parent_b) in enumerate(pairs):
        offspring, info = crossover_pair(
            parent_a.bits, parent_b.bits, u, uplimit, mode, rng, exclude_parent_clones
        )
        pool[:, index * per_pair:(index + 1) * per_pair] = offspring
        origins.extend([(parent_a.id, parent_b.id)] * offspring.shape[1])
        notes.append(
            f"crossover({mode.upper()}): {parent_a.id} x {parent_b.id}, "
            f"segments={info['segments']}, cuts={info['cut_points']}, "
            f"offspring={offspring.shape[1]}"
        )

    if pool.shape[1] > uplimit:
        keep = np.sort(rng.choice(pool.shape[1], size=uplimit, replace=False))
        notes.append(f"crossover: pool of {pool.shape[1]} offspring capped at {uplimit}")
        pool = pool[:, keep]
        origins = [origins[i] for i in keep]

    logger.debug("crossover produced %d offspring from %d pairs", pool.shape[1], len(pairs))

    return pool, origins, notes


def crossover_statistics(offspring: np.ndarray, parent_a: np.ndarray, parent_b: np.ndarray) -> Dict:
    """
    Calculate statistics about a crossover operation.

    Args:
        offspring: (n_grids, n_offspring) matrix
        parent_a: First parent bit vector
        parent_b: Second parent bit vector

    Returns:
        Dictionary with crossover statistics
    """
    counts = offspring.sum(axis=0) if offspring.size else np.empty(0)
    differs_from_parents = [
        not (np.array_equal(offspring[:, i], parent_a) or np.array_equal(offspring[:, i], parent_b))
        for i in range(offspring.shape[1])
    ]

    return {
        'n_offspring': int(offspring.shape[1]),
        'parent_a_turbines': int(np.sum(parent_a)),
        'parent_b_turbines': int(np.sum(parent_b)),
        'min_turbines': int(counts.min()) if counts.size else 0,
        'max_turbines': int(counts.max()) if counts.size else 0,
        'novel_offspring': int(sum(differs_from_parents)),
    }
