"""
Mutation operators for the wind farm GA.

Independent bit flips over the offspring matrix, plus the variable-rate
rule that raises the mutation probability when a generation shows signs of
premature convergence.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np

from .data_models import Population


logger = logging.getLogger(__name__)


def mutate(
    offspring: np.ndarray,
    p: float,
    rng: np.random.Generator
) -> Tuple[np.ndarray, List[str]]:
    """
    Flip every bit independently with probability ``p``.

    The turbine count is not preserved; repair restores it afterwards.

    Args:
        offspring: (n_grids, n_offspring) binary matrix
        p: Flip probability in [0, 1]
        rng: Random number generator

    Returns:
        Tuple of (mutated matrix with the same shape, operation log)

    Raises:
        ValueError: If p is outside [0, 1]
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"Mutation probability must be within [0, 1], got {p}")

    offspring = np.asarray(offspring, dtype=np.uint8)
    flips = rng.random(offspring.shape) < p
    mutated = np.where(flips, 1 - offspring, offspring).astype(np.uint8)

    n_flips = int(flips.sum())
    op_log = [f"mutate(p={p:.4f}): flipped {n_flips} of {offspring.size} bits"]
    logger.debug(op_log[0])

    return mutated, op_log


def count_best_duplicates(population: Population) -> int:
    """Number of individuals sharing the best park fitness of a generation."""
    if not population:
        return 0
    fitness = np.array([member.park_fitness for member in population], dtype=float)
    return int(np.isclose(fitness, fitness.max()).sum())


def mutation_rate_for_generation(
    population: Population,
    base_rate: float,
    rng: np.random.Generator,
    variable_range: Tuple[float, float] = (0.03, 0.1)
) -> Tuple[float, bool]:
    """
    Decide the mutation probability for breeding the next generation.

    When more than two individuals share the best fitness, the generation is
    treated as converging and the rate is raised to a value drawn uniformly
    from ``variable_range`` (never below ``base_rate``). Otherwise the base
    rate is used and nothing is drawn from ``rng``.

    Args:
        population: Evaluated current generation
        base_rate: Configured mutation rate
        rng: Random number generator
        variable_range: (low, high) bounds of the raised rate

    Returns:
        Tuple of (rate, variable_rate_triggered)
    """
    if count_best_duplicates(population) <= 2:
        return base_rate, False

    low, high = variable_range
    raised = float(rng.uniform(low, high))
    return max(base_rate, raised), True


def mutation_statistics(original: np.ndarray, mutated: np.ndarray) -> Dict:
    """
    Calculate statistics about a mutation step.

    Args:
        original: Matrix before mutation
        mutated: Matrix after mutation

    Returns:
        Dictionary with mutation statistics
    """
    changed = original != mutated

    return {
        'total_bits': int(original.size),
        'bits_changed': int(changed.sum()),
        'change_rate': float(changed.sum()) / max(original.size, 1),
        'columns_changed': int(changed.any(axis=0).sum()) if original.ndim == 2 else int(changed.any()),
    }
