"""
Genetic algorithm for wind farm layout optimization.

This package places a fixed number of turbines on a discretized grid so
that the park's energy yield, net of wake losses, is maximized.

Key Features:
- Fitness-ranked selection with fixed or dispersion-driven fraction
- Segment crossover with equal or random cut points, bounded by uplimit
- Bit-flip mutation with a variable rate on premature convergence
- Turbine-count repair weighted by generation-wide cell statistics
- Pluggable fitness evaluation (Jensen wake model included)

Modules:
- data_models: Grid, layouts, fitness tables, archive and run records
- config: YAML run configuration loading and validation
- selection: Parent selection and pairing
- crossover: Segment crossover operators
- mutation: Bit-flip mutation and variable mutation rate
- repair: Turbine-count repair
- fitness: Evaluator interface and Jensen wake evaluator
- engine: Generational driver
- results: Best layouts, fitness history and cell usage of a run
- orchestration / cli: Command-line runs from YAML files
"""

__version__ = "0.1.0"
__author__ = "Wind Farm Optimization Team"

from .config import ConfigValidationError, GAConfig, TurbineConfig
from .data_models import FitnessTable, GAResult, GridIndex, Individual
from .engine import GAEngine, random_population
from .fitness import FitnessEvaluator, JensenWakeEvaluator

__all__ = [
    "ConfigValidationError",
    "GAConfig",
    "TurbineConfig",
    "FitnessTable",
    "GAResult",
    "GridIndex",
    "Individual",
    "GAEngine",
    "random_population",
    "FitnessEvaluator",
    "JensenWakeEvaluator",
]
