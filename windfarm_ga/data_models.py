"""
Data models for the wind farm GA.

Core data structures representing grid cells, individuals (layouts),
per-turbine fitness tables, populations and run results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
import math

import numpy as np


FITNESS_COLUMNS = (
    "Rect_ID",
    "EnergyOverall",
    "EfficAllDir",
    "AbschGesamt",
    "Parkfitness",
    "X",
    "Y",
)


@dataclass(frozen=True)
class GridCell:
    """A candidate turbine site. Ids are 1-based and contiguous."""
    id: int
    x: float
    y: float
    roughness: float = 0.0
    elevation: float = 0.0


class GridIndex:
    """
    Immutable index of grid cells for one run.

    Bit position ``i`` of an individual refers to cell id ``i + 1``.
    """

    def __init__(self, cells: Iterable[GridCell]):
        self._cells: Tuple[GridCell, ...] = tuple(cells)

        if not self._cells:
            raise ValueError("GridIndex must contain at least one cell")

        for position, cell in enumerate(self._cells):
            if cell.id != position + 1:
                raise ValueError(
                    f"Cell ids must be contiguous starting at 1, "
                    f"got id {cell.id} at position {position}"
                )

        self._centroids = np.array([(c.x, c.y) for c in self._cells], dtype=float)
        self._centroids.setflags(write=False)

    @classmethod
    def from_rectangle(
        cls,
        width: float,
        height: float,
        resolution: float,
        roughness: float = 0.0,
    ) -> "GridIndex":
        """
        Tessellate a width x height rectangle into square cells.

        Cells are numbered row by row starting at the lower-left corner and
        their centroids sit in the middle of each cell.

        Args:
            width: Extent along x (m)
            height: Extent along y (m)
            resolution: Cell edge length (m)
            roughness: Surface roughness assigned to every cell

        Returns:
            GridIndex with ``floor(width/resolution) * floor(height/resolution)`` cells

        Raises:
            ValueError: If the rectangle holds no complete cell
        """
        if resolution <= 0:
            raise ValueError(f"Grid resolution must be positive, got {resolution}")

        n_x = int(math.floor(width / resolution))
        n_y = int(math.floor(height / resolution))

        if n_x <= 0 or n_y <= 0:
            raise ValueError(
                f"Area {width} x {height} is smaller than one cell of {resolution}"
            )

        cells = []
        for row in range(n_y):
            for col in range(n_x):
                cells.append(
                    GridCell(
                        id=len(cells) + 1,
                        x=(col + 0.5) * resolution,
                        y=(row + 0.5) * resolution,
                        roughness=roughness,
                    )
                )

        return cls(cells)

    @property
    def n_grids(self) -> int:
        return len(self._cells)

    @property
    def centroids(self) -> np.ndarray:
        """Read-only (n_grids, 2) array of cell centroids."""
        return self._centroids

    @property
    def cells(self) -> Tuple[GridCell, ...]:
        return self._cells

    def cell(self, cell_id: int) -> Tuple[float, float]:
        """Centroid of a cell by its 1-based id."""
        if not 1 <= cell_id <= len(self._cells):
            raise KeyError(f"Unknown cell id: {cell_id}")
        found = self._cells[cell_id - 1]
        return found.x, found.y

    def __len__(self) -> int:
        return len(self._cells)


@dataclass(frozen=True)
class FitnessTable:
    """
    Per-turbine metrics of one or more evaluated layouts.

    Column-oriented with a fixed schema (see FITNESS_COLUMNS). One row per
    occupied cell. A generation-wide table is the concatenation of the
    tables of all individuals in that generation.
    """
    rect_id: np.ndarray
    energy_overall: np.ndarray
    effic_all_dir: np.ndarray
    absch_gesamt: np.ndarray
    park_fitness: np.ndarray
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        lengths = set()
        for name in self._field_names():
            column = np.asarray(getattr(self, name))
            column = column.astype(np.int64 if name == "rect_id" else float, copy=True)
            column.setflags(write=False)
            object.__setattr__(self, name, column)
            lengths.add(len(column))

        if len(lengths) > 1:
            raise ValueError(f"FitnessTable columns have different lengths: {sorted(lengths)}")

    @staticmethod
    def _field_names() -> Tuple[str, ...]:
        return ("rect_id", "energy_overall", "effic_all_dir",
                "absch_gesamt", "park_fitness", "x", "y")

    @classmethod
    def empty(cls) -> "FitnessTable":
        return cls(*(np.empty(0) for _ in FITNESS_COLUMNS))

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "FitnessTable":
        """
        Build a table from dict rows keyed by the FITNESS_COLUMNS names.

        Args:
            rows: Iterable of mappings, e.g. {"Rect_ID": 3, "EnergyOverall": ...}

        Returns:
            FitnessTable holding the rows in order

        Raises:
            KeyError: If a row misses one of the required columns
        """
        rows = list(rows)
        columns = [[row[name] for row in rows] for name in FITNESS_COLUMNS]
        return cls(*columns)

    @classmethod
    def concat(cls, tables: Iterable["FitnessTable"]) -> "FitnessTable":
        tables = list(tables)
        if not tables:
            return cls.empty()
        return cls(*(
            np.concatenate([getattr(t, name) for t in tables])
            for name in cls._field_names()
        ))

    def __len__(self) -> int:
        return len(self.rect_id)

    def column(self, name: str) -> np.ndarray:
        """Access a column by its schema name (e.g. 'AbschGesamt')."""
        try:
            index = FITNESS_COLUMNS.index(name)
        except ValueError:
            raise KeyError(f"Unknown fitness column: {name}")
        return getattr(self, self._field_names()[index])

    def to_rows(self) -> List[Dict[str, Any]]:
        return [
            {name: self.column(name)[i].item() for name in FITNESS_COLUMNS}
            for i in range(len(self))
        ]

    def group_mean_by_cell(self, columns: Tuple[str, ...]) -> Tuple[np.ndarray, Dict[str, np.ndarray]]:
        """
        Group rows by Rect_ID and average the requested columns.

        Args:
            columns: Schema names of the columns to average

        Returns:
            Tuple of (sorted unique cell ids, {column name: per-cell mean})
        """
        if len(self) == 0:
            return np.empty(0, dtype=np.int64), {name: np.empty(0) for name in columns}

        cell_ids, inverse = np.unique(self.rect_id, return_inverse=True)
        counts = np.bincount(inverse)
        means = {
            name: np.bincount(inverse, weights=self.column(name)) / counts
            for name in columns
        }
        return cell_ids, means

    # Park-level values are repeated on every row of a single layout's table.

    @property
    def park_fitness_value(self) -> float:
        return float(self.park_fitness[0]) if len(self) else float("-inf")

    @property
    def energy_value(self) -> float:
        return float(self.energy_overall[0]) if len(self) else float("-inf")

    @property
    def efficiency_value(self) -> float:
        return float(self.effic_all_dir[0]) if len(self) else float("-inf")


@dataclass
class Individual:
    """
    A candidate wind farm layout.

    Attributes:
        id: Unique identifier for this individual
        bits: Binary vector of length n_grids; 1 means a turbine occupies the cell
        metadata: Additional information (generation, parents, repair notes, ...)
    """
    id: str
    bits: np.ndarray
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Ensure bits is a flat uint8 vector of zeros and ones."""
        bits = np.asarray(self.bits)
        if bits.ndim != 1:
            raise ValueError(f"Individual bits must be one-dimensional, got shape {bits.shape}")
        if bits.size and not np.isin(bits, (0, 1)).all():
            raise ValueError("Individual bits must only contain 0 and 1")
        self.bits = bits.astype(np.uint8, copy=True)

    def copy(self) -> "Individual":
        return Individual(id=self.id, bits=self.bits.copy(), metadata=self.metadata.copy())

    def turbine_count(self) -> int:
        return int(self.bits.sum())

    def occupied_cells(self) -> np.ndarray:
        """1-based ids of the cells holding a turbine, ascending."""
        return np.flatnonzero(self.bits) + 1

    @property
    def n_grids(self) -> int:
        return len(self.bits)


@dataclass
class ScoredIndividual:
    """An Individual together with the FitnessTable of its evaluation."""
    individual: Individual
    fitness: FitnessTable

    @property
    def park_fitness(self) -> float:
        return self.fitness.park_fitness_value

    @property
    def energy(self) -> float:
        return self.fitness.energy_value

    @property
    def efficiency(self) -> float:
        return self.fitness.efficiency_value


Population = List[ScoredIndividual]


def generation_table(population: Population) -> FitnessTable:
    """Concatenate the fitness tables of every individual in a generation."""
    return FitnessTable.concat(member.fitness for member in population)


def rank_population(population: Population) -> Population:
    """Order by descending park fitness; ties keep their original order."""
    return sorted(population, key=lambda member: -member.park_fitness)


def population_matrix(individuals: Iterable[Individual]) -> np.ndarray:
    """Stack individuals as columns of a (n_grids, n_individuals) matrix."""
    individuals = list(individuals)
    if not individuals:
        raise ValueError("Cannot build a matrix from an empty list of individuals")
    matrix = np.empty((individuals[0].n_grids, len(individuals)), dtype=np.uint8)
    for column, individual in enumerate(individuals):
        matrix[:, column] = individual.bits
    return matrix


@dataclass
class BestArchive:
    """
    Best-energy and best-efficiency individuals seen during a run.

    Updated monotonically: a candidate replaces the stored entry only if it
    is strictly better on that metric.
    """
    best_energy: Optional[ScoredIndividual] = None
    best_efficiency: Optional[ScoredIndividual] = None

    def update(self, population: Population) -> Tuple[bool, bool]:
        """
        Offer a generation to the archive.

        Args:
            population: Evaluated individuals of the current generation

        Returns:
            Tuple of (energy_improved, efficiency_improved)
        """
        energy_improved = False
        efficiency_improved = False

        for member in population:
            if self.best_energy is None or member.energy > self.best_energy.energy:
                self.best_energy = member
                energy_improved = True
            if self.best_efficiency is None or member.efficiency > self.best_efficiency.efficiency:
                self.best_efficiency = member
                efficiency_improved = True

        return energy_improved, efficiency_improved


@dataclass
class GenerationRecord:
    """
    What one generation hands to the orchestrator.

    Attributes:
        generation: 1-based generation number
        best_energy: FitnessTable of the generation's best-energy layout
        best_efficiency: FitnessTable of the generation's best-efficiency layout
        fitness_max: Highest park fitness in the generation
        fitness_mean: Mean park fitness
        fitness_min: Lowest park fitness
        n_individuals: Number of evaluated individuals
        selection_fraction: Fraction of the ranking selected as parents
        crossover_rate: Crossover rate u used to breed the next generation
        mutation_rate: Mutation probability used to breed the next generation
        n_parents: Number of parents selected
        n_offspring: Number of offspring produced by crossover
        notes: Operator notes collected while breeding
        cell_counts: Number of layouts in the generation occupying each cell
    """
    generation: int
    best_energy: FitnessTable
    best_efficiency: FitnessTable
    fitness_max: float
    fitness_mean: float
    fitness_min: float
    n_individuals: int
    selection_fraction: Optional[float] = None
    crossover_rate: Optional[float] = None
    mutation_rate: Optional[float] = None
    n_parents: int = 0
    n_offspring: int = 0
    notes: List[str] = field(default_factory=list)
    cell_counts: Optional[np.ndarray] = None


@dataclass
class GAResult:
    """Outcome of a complete run."""
    generations: List[GenerationRecord]
    archive: BestArchive
    final_population: Population
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.generations)
