"""
Generational driver for the wind farm GA.

Threads a population through selection, crossover, mutation, repair and
evaluation for a fixed number of generations, keeping a best-so-far
archive and one GenerationRecord per generation.
"""

from dataclasses import asdict
import logging
from typing import Dict, List, Optional

import numpy as np

from .config import GAConfig
from .crossover import crossover_population
from .data_models import (
    BestArchive,
    GAResult,
    GenerationRecord,
    GridIndex,
    Individual,
    Population,
    ScoredIndividual,
    generation_table,
    population_matrix,
)
from .fitness import FitnessEvaluator
from .mutation import mutate, mutation_rate_for_generation
from .repair import repair_turbine_count
from .selection import select_parents


logger = logging.getLogger(__name__)


def random_population(
    n_grids: int,
    n_turbines: int,
    size: int,
    rng: np.random.Generator,
    generation: int = 1
) -> List[Individual]:
    """
    Create random layouts with exactly ``n_turbines`` turbines each.

    Args:
        n_grids: Number of grid cells
        n_turbines: Turbines per layout
        size: Number of layouts
        rng: Random number generator
        generation: Generation number stored in the ids and metadata

    Returns:
        List of Individuals

    Raises:
        ValueError: If n_turbines exceeds n_grids
    """
    if n_turbines > n_grids:
        raise ValueError(f"Cannot place {n_turbines} turbines on {n_grids} grid cells")

    individuals = []
    for index in range(size):
        cells = rng.choice(n_grids, size=n_turbines, replace=False)
        bits = np.zeros(n_grids, dtype=np.uint8)
        bits[cells] = 1
        individuals.append(
            Individual(
                id=_individual_id(generation, index),
                bits=bits,
                metadata={'generation': generation, 'origin': 'random'},
            )
        )
    return individuals


def _individual_id(generation: int, index: int) -> str:
    return f"gen{generation:03d}_{index:03d}"


class GAEngine:
    """
    Runs the genetic algorithm on one grid with one evaluator.

    Every random draw of a run comes from a single Generator, so a run is
    reproducible from its seed.

    Example:
        >>> grid = GridIndex.from_rectangle(1000, 1000, 200)
        >>> evaluator = JensenWakeEvaluator(grid, [{'ws': 12, 'wd': 0}])
        >>> engine = GAEngine(GAConfig(n_turbines=5, iterations=10, random_seed=1), grid, evaluator)
        >>> result = engine.run()
    """

    def __init__(
        self,
        config: GAConfig,
        grid: GridIndex,
        evaluator: FitnessEvaluator,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Args:
            config: GA parameters, validated against the grid size here
            grid: Candidate turbine sites
            evaluator: Layout evaluator
            rng: Random number generator (default: seeded from config.random_seed)

        Raises:
            ConfigValidationError: If the configuration is invalid for this grid
        """
        config.validate(grid.n_grids)

        self.config = config
        self.grid = grid
        self.evaluator = evaluator
        self.rng = rng if rng is not None else np.random.default_rng(config.random_seed)

        self.generation = 0
        self.population: Population = []
        self.archive = BestArchive()
        self.records: List[GenerationRecord] = []

    def initial_population(self) -> List[Individual]:
        return random_population(
            self.grid.n_grids, self.config.n_turbines, self.config.n_start, self.rng
        )

    def evaluate(self, individuals: List[Individual]) -> Population:
        """
        Evaluate new individuals.

        Evaluator exceptions propagate unchanged.
        """
        population = []
        for individual in individuals:
            table = self.evaluator.evaluate(individual.bits)
            population.append(ScoredIndividual(individual=individual, fitness=table))
        return population

    def start(self) -> None:
        """Create and evaluate the first generation."""
        self.generation = 1
        self.population = self.evaluate(self.initial_population())
        self.archive = BestArchive()
        self.records = []

    def step(self, breed: bool = True) -> GenerationRecord:
        """
        Record the current generation and, if ``breed``, replace it by the next.

        Returns:
            GenerationRecord of the generation that was current on entry
        """
        if not self.population:
            self.start()

        record = self._summarize(self.population)
        energy_improved, efficiency_improved = self.archive.update(self.population)
        if energy_improved or efficiency_improved:
            logger.info(
                "Generation %d: new best energy %.2f, best efficiency %.2f%%",
                self.generation,
                self.archive.best_energy.energy,
                self.archive.best_efficiency.efficiency,
            )

        if breed:
            self.population = self._breed(self.population, record)
            self.generation += 1

        self.records.append(record)
        return record

    def run(self) -> GAResult:
        """
        Run ``config.iterations`` generations.

        The last generation is evaluated and recorded but not bred.

        Returns:
            GAResult with one GenerationRecord per generation
        """
        iterations = self.config.iterations

        if self.config.verbose:
            print("=" * 70)
            print("WIND FARM GA")
            print("=" * 70)
            print(f"Grid cells: {self.grid.n_grids}")
            print(f"Turbines: {self.config.n_turbines}")
            print(f"Generations: {iterations}")
            print(f"Selection: {self.config.selection_mode}, "
                  f"crossover: {self.config.crossover_mode} (u={self.config.crossover_rate})")
            print()

        self.start()

        for index in range(iterations):
            record = self.step(breed=index < iterations - 1)

            if self.config.verbose and ((index + 1) % 10 == 0 or index == iterations - 1):
                print(f"  Progress: {index + 1}/{iterations} generations, "
                      f"best fitness {record.fitness_max:.2f}, "
                      f"mean {record.fitness_mean:.2f}, "
                      f"population {record.n_individuals}")

        result = GAResult(
            generations=list(self.records),
            archive=self.archive,
            final_population=list(self.population),
            metadata={
                'n_grids': self.grid.n_grids,
                'config': asdict(self.config),
            },
        )

        if self.config.verbose:
            print()
            print(f"Best energy: {self.archive.best_energy.energy:.2f}")
            print(f"Best efficiency: {self.archive.best_efficiency.efficiency:.2f}%")

        return result

    def _summarize(self, population: Population) -> GenerationRecord:
        fitness = np.array([member.park_fitness for member in population], dtype=float)
        best_energy = max(population, key=lambda member: member.energy)
        best_efficiency = max(population, key=lambda member: member.efficiency)
        counts = population_matrix(member.individual for member in population).sum(axis=1)

        return GenerationRecord(
            generation=self.generation,
            best_energy=best_energy.fitness,
            best_efficiency=best_efficiency.fitness,
            fitness_max=float(fitness.max()),
            fitness_mean=float(fitness.mean()),
            fitness_min=float(fitness.min()),
            n_individuals=len(population),
            cell_counts=counts.astype(np.int64),
        )

    def _breed(self, population: Population, record: GenerationRecord) -> Population:
        """Produce and evaluate the next generation, filling the record's control values."""
        cfg = self.config
        next_generation = self.generation + 1

        selection = select_parents(
            population,
            cfg.selection_mode,
            cfg.elitism,
            cfg.n_elite,
            self.rng,
            fix_fraction=cfg.selection_fraction,
            var_bounds=cfg.var_fraction_bounds,
            dispersion_scale=cfg.dispersion_scale,
        )

        pairs = [(a.individual, b.individual) for a, b in selection.pairs]
        pool, origins, crossover_notes = crossover_population(
            pairs, cfg.crossover_rate, cfg.uplimit, cfg.crossover_mode,
            self.rng, cfg.exclude_parent_clones
        )

        rate, variable = mutation_rate_for_generation(
            population, cfg.mutation_rate, self.rng, cfg.variable_mutation_range
        )
        mutated, mutation_notes = mutate(pool, rate, self.rng)

        repaired, repair_notes = repair_turbine_count(
            mutated,
            cfg.n_turbines,
            generation_table(population),
            self.grid.n_grids,
            cfg.trim_force,
            self.rng,
            cfg.repair_exponent,
        )

        children = [
            Individual(
                id=_individual_id(next_generation, column),
                bits=repaired[:, column],
                metadata={'generation': next_generation, 'parents': list(origins[column])},
            )
            for column in range(repaired.shape[1])
        ]

        elites = [
            ScoredIndividual(
                individual=Individual(
                    id=f"gen{next_generation:03d}_elite{rank:02d}",
                    bits=member.individual.bits,
                    metadata={'generation': next_generation, 'elite_of': member.individual.id},
                ),
                fitness=member.fitness,
            )
            for rank, member in enumerate(selection.elites)
        ]

        notes = list(selection.notes) + crossover_notes + mutation_notes + repair_notes
        if variable:
            notes.append(f"variable mutation rate triggered: p={rate:.4f}")
        for note in notes:
            logger.debug(note)

        record.selection_fraction = selection.fraction
        record.crossover_rate = cfg.crossover_rate
        record.mutation_rate = rate
        record.n_parents = len(selection.selected)
        record.n_offspring = pool.shape[1]
        record.notes = notes

        return elites + self.evaluate(children)

    def summary(self) -> Dict:
        """Key figures of the run so far."""
        return {
            'generations': len(self.records),
            'best_energy': self.archive.best_energy.energy if self.archive.best_energy else None,
            'best_efficiency': (
                self.archive.best_efficiency.efficiency if self.archive.best_efficiency else None
            ),
            'population_size': len(self.population),
        }
