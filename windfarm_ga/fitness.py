"""
Fitness evaluation for the wind farm GA.

The GA only depends on the FitnessEvaluator interface: given a layout it
returns one FitnessTable row per turbine. JensenWakeEvaluator is a compact
reference implementation built on the Jensen top-hat wake model; it is
meant to make runs possible, not to be physically exact.
"""

import logging
import math
from typing import Dict, Iterable, List, Optional

import numpy as np

from .config import TurbineConfig
from .data_models import FitnessTable, GridIndex, Individual


logger = logging.getLogger(__name__)


HOURS_PER_YEAR = 8760.0
FALLBACK_WAKE_DECAY = 0.075

# Downwind distances below this (m) count as side by side
DOWNWIND_TOLERANCE = 1e-6


class FitnessEvaluator:
    """
    Interface of a layout evaluator.

    Implementations must be pure: evaluating the same layout twice gives
    the same table and does not touch shared state.
    """

    def evaluate(self, bits: np.ndarray) -> FitnessTable:
        """
        Evaluate one layout.

        Args:
            bits: Layout bit vector of length n_grids

        Returns:
            FitnessTable with one row per occupied cell
        """
        raise NotImplementedError

    def evaluate_many(self, individuals: Iterable[Individual]) -> List[FitnessTable]:
        return [self.evaluate(individual.bits) for individual in individuals]


class JensenWakeEvaluator(FitnessEvaluator):
    """
    Jensen wake model over a set of wind scenarios.

    For every wind direction the turbine coordinates are rotated into a
    downwind/crosswind frame. A turbine lies in the wake of another if it is
    downwind and within the linearly expanding wake radius. Deficits from
    several upstream turbines are combined as root sum of squares.
    """

    def __init__(
        self,
        grid: GridIndex,
        wind: List[Dict[str, float]],
        turbine: Optional[TurbineConfig] = None,
    ):
        """
        Args:
            grid: Grid index providing the cell centroids
            wind: Wind scenarios as dicts with 'ws' (m/s), 'wd' (deg, direction
                the wind comes from) and optional 'probab' (relative weight)
            turbine: Turbine parameters
        """
        if not wind:
            raise ValueError("At least one wind scenario is required")

        self.grid = grid
        self.turbine = turbine or TurbineConfig()

        self.speeds = np.array([float(w['ws']) for w in wind])
        self.directions = np.radians([float(w['wd']) for w in wind])
        probab = np.array([float(w.get('probab', 1.0)) for w in wind])
        if probab.sum() <= 0:
            raise ValueError("Wind scenario probabilities must not all be zero")
        self.probabilities = probab / probab.sum()

        roughness = np.array([cell.roughness for cell in grid.cells], dtype=float)
        self.roughness = roughness
        self.wake_decay = self._wake_decay(float(np.mean(roughness)))

    def _wake_decay(self, roughness: float) -> float:
        if self.turbine.wake_decay is not None:
            return float(self.turbine.wake_decay)
        if roughness <= 0:
            return FALLBACK_WAKE_DECAY
        return 0.5 / math.log(self.turbine.hub_height / roughness)

    def hub_speed(self, speed: np.ndarray, roughness: np.ndarray) -> np.ndarray:
        """Extrapolate measured speeds to hub height with the log wind profile."""
        t = self.turbine
        if t.hub_height == t.reference_height:
            return speed
        scale = np.ones_like(roughness)
        rough = roughness > 0
        scale[rough] = (np.log(t.hub_height / roughness[rough])
                        / np.log(t.reference_height / roughness[rough]))
        return speed * scale

    def power(self, speed: np.ndarray) -> np.ndarray:
        """Cubic power curve between cut-in and rated speed (kW)."""
        t = self.turbine
        speed = np.asarray(speed, dtype=float)
        ramp = (speed ** 3 - t.cut_in_speed ** 3) / (t.rated_speed ** 3 - t.cut_in_speed ** 3)
        power = np.where(speed < t.cut_in_speed, 0.0, t.rated_power * ramp)
        power = np.where(speed >= t.rated_speed, t.rated_power, power)
        return np.where(speed > t.cut_out_speed, 0.0, power)

    def velocity_deficits(self, coords: np.ndarray, direction: float) -> np.ndarray:
        """
        Combined fractional speed deficit of every turbine for one direction.

        Args:
            coords: (n_turbines, 2) turbine positions
            direction: Direction the wind comes from, radians clockwise from north

        Returns:
            Deficit per turbine in [0, 1)
        """
        r0 = self.turbine.rotor_radius
        ct = self.turbine.thrust_coefficient

        # unit vector the wind travels along, and its normal
        downwind = np.array([-math.sin(direction), -math.cos(direction)])
        crosswind = np.array([downwind[1], -downwind[0]])

        along = coords @ downwind
        across = coords @ crosswind

        x_dist = along[:, np.newaxis] - along[np.newaxis, :]
        y_dist = np.abs(across[:, np.newaxis] - across[np.newaxis, :])

        wake_radius = r0 + self.wake_decay * np.maximum(x_dist, 0.0)
        in_wake = (x_dist > DOWNWIND_TOLERANCE) & (y_dist < wake_radius)

        deficit = np.zeros_like(x_dist)
        deficit[in_wake] = (1.0 - math.sqrt(1.0 - ct)) * (r0 / wake_radius[in_wake]) ** 2

        return np.sqrt(np.sum(deficit ** 2, axis=1))

    def evaluate(self, bits: np.ndarray) -> FitnessTable:
        """
        Evaluate one layout over all wind scenarios.

        Returns:
            FitnessTable where EnergyOverall is the park's yearly energy (MWh),
            EfficAllDir the park energy relative to the wake-free energy (%),
            AbschGesamt the probability-weighted speed deficit per turbine (%)
            and Parkfitness = EnergyOverall * EfficAllDir / 100

        Raises:
            ValueError: If the layout has no turbine or the wrong length
        """
        bits = np.asarray(bits)
        if bits.shape != (self.grid.n_grids,):
            raise ValueError(
                f"Layout length {bits.shape} does not match grid of {self.grid.n_grids} cells"
            )

        cells = np.flatnonzero(bits) + 1
        if cells.size == 0:
            raise ValueError("Cannot evaluate a layout without turbines")

        coords = self.grid.centroids[cells - 1]
        roughness = self.roughness[cells - 1]

        energy = np.zeros(cells.size)
        ideal = np.zeros(cells.size)
        wake_loss = np.zeros(cells.size)

        for speed, direction, probability in zip(self.speeds, self.directions, self.probabilities):
            free_speed = self.hub_speed(np.full(cells.size, speed), roughness)
            deficits = self.velocity_deficits(coords, direction)
            hours = probability * HOURS_PER_YEAR

            energy += self.power(free_speed * (1.0 - deficits)) * hours / 1000.0
            ideal += self.power(free_speed) * hours / 1000.0
            wake_loss += probability * deficits * 100.0

        energy_overall = float(energy.sum())
        ideal_overall = float(ideal.sum())
        efficiency = energy_overall / ideal_overall * 100.0 if ideal_overall > 0 else 0.0
        park_fitness = energy_overall * efficiency / 100.0

        n = cells.size
        return FitnessTable(
            rect_id=cells,
            energy_overall=np.full(n, energy_overall),
            effic_all_dir=np.full(n, efficiency),
            absch_gesamt=wake_loss,
            park_fitness=np.full(n, park_fitness),
            x=coords[:, 0],
            y=coords[:, 1],
        )
