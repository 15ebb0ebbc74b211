"""
Selection operator for the wind farm GA.

Ranks an evaluated generation by park fitness, keeps a fraction of the
ranking as breeding parents, pairs them by fitness-weighted sampling and
optionally carries an elite group into the next generation.
"""

from dataclasses import dataclass, field
import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from .config import SELECTION_MODES
from .data_models import Population, ScoredIndividual, rank_population


logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """
    Outcome of one selection step.

    Attributes:
        pairs: Parent pairs handed to crossover
        elites: Individuals copied unchanged into the next generation
        selected: All individuals kept from the ranking (before pairing)
        fraction: Fraction of the ranking that was selected
    """
    pairs: List[Tuple[ScoredIndividual, ScoredIndividual]]
    elites: List[ScoredIndividual]
    selected: List[ScoredIndividual]
    fraction: float
    notes: List[str] = field(default_factory=list)


def fitness_dispersion(population: Population) -> float:
    """
    Coefficient of variation of park fitness across a generation.

    Returns 0.0 for a generation of identical (or zero-mean) fitness values.
    """
    values = np.array([member.park_fitness for member in population], dtype=float)
    if values.size < 2:
        return 0.0

    mean = float(np.mean(values))
    if mean == 0.0:
        return 0.0
    return float(np.std(values) / abs(mean))


def selection_fraction(
    population: Population,
    mode: str,
    fix_fraction: float = 0.5,
    var_bounds: Tuple[float, float] = (0.2, 0.8),
    dispersion_scale: float = 0.05,
) -> float:
    """
    Fraction of the ranked population kept as parents.

    FIX returns ``fix_fraction``. VAR interpolates linearly between the
    bounds by the fitness dispersion: a diverse generation is selected
    broadly, a converged one narrowly. The result is monotone non-decreasing
    in the dispersion and saturates at ``dispersion_scale``.

    Args:
        population: Evaluated generation
        mode: "FIX" or "VAR"
        fix_fraction: Constant fraction used in FIX mode
        var_bounds: (lowest, highest) fraction used in VAR mode
        dispersion_scale: Dispersion at which VAR reaches its upper bound

    Returns:
        Fraction in (0, 1]

    Raises:
        ValueError: If mode is unknown
    """
    mode = mode.upper()

    if mode == 'FIX':
        return fix_fraction

    elif mode == 'VAR':
        low, high = var_bounds
        spread = min(1.0, fitness_dispersion(population) / dispersion_scale)
        return low + (high - low) * spread

    else:
        raise ValueError(f"Unknown selection mode: {mode}")


def pair_parents(
    parents: List[ScoredIndividual],
    rng: np.random.Generator
) -> List[Tuple[ScoredIndividual, ScoredIndividual]]:
    """
    Pair parents for crossover.

    The breeding order is drawn without replacement with probabilities
    proportional to fitness (shifted to be strictly positive), then
    consecutive parents form a pair. An odd leftover parent is not paired.

    Args:
        parents: Selected parents
        rng: Random number generator

    Returns:
        List of (parent_a, parent_b) tuples

    Raises:
        ValueError: If fewer than 2 parents available
    """
    if len(parents) < 2:
        raise ValueError(f"Need at least 2 parents for crossover, got {len(parents)}")

    fitness = np.array([p.park_fitness for p in parents], dtype=float)
    weights = fitness - fitness.min() + 1.0
    weights_normalized = weights / np.sum(weights)

    order = rng.choice(len(parents), size=len(parents), replace=False, p=weights_normalized)

    return [
        (parents[order[i]], parents[order[i + 1]])
        for i in range(0, len(order) - 1, 2)
    ]


def select_parents(
    population: Population,
    mode: str,
    elitism: bool,
    n_elite: int,
    rng: np.random.Generator,
    fix_fraction: float = 0.5,
    var_bounds: Tuple[float, float] = (0.2, 0.8),
    dispersion_scale: float = 0.05,
    fraction: Optional[float] = None,
) -> SelectionResult:
    """
    Select breeding pairs and the elite group from an evaluated generation.

    Args:
        population: Evaluated generation (any order)
        mode: Selection mode, "FIX" or "VAR"
        elitism: Whether to carry the best individuals forward unchanged
        n_elite: Size of the elite group (clamped to the population size)
        rng: Random number generator
        fix_fraction: Constant fraction for FIX mode
        var_bounds: Fraction bounds for VAR mode
        dispersion_scale: Dispersion at which VAR saturates
        fraction: Explicit fraction overriding the mode's policy

    Returns:
        SelectionResult with pairs, elites and the fraction used

    Raises:
        ValueError: If mode is unknown or fewer than 2 individuals are given
    """
    if mode.upper() not in SELECTION_MODES:
        raise ValueError(f"Unknown selection mode: {mode}")

    if len(population) < 2:
        raise ValueError(f"Selection needs at least 2 evaluated individuals, got {len(population)}")

    if fraction is None:
        fraction = selection_fraction(
            population, mode, fix_fraction, var_bounds, dispersion_scale
        )

    ranked = rank_population(population)

    n_selected = int(math.floor(len(ranked) * fraction))
    n_selected = min(len(ranked), max(2, n_selected))
    selected = ranked[:n_selected]

    elites = []
    if elitism and n_elite > 0:
        elites = ranked[:min(n_elite, len(ranked))]

    pairs = pair_parents(selected, rng)

    notes = [
        f"selection({mode.upper()}): kept {n_selected}/{len(ranked)} "
        f"(fraction={fraction:.3f}), {len(pairs)} pairs, {len(elites)} elites"
    ]
    logger.debug(notes[0])

    return SelectionResult(
        pairs=pairs,
        elites=elites,
        selected=selected,
        fraction=fraction,
        notes=notes,
    )
