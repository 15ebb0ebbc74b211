"""
Orchestration module for the wind farm GA.

Builds the grid, evaluator and engine from a validated run configuration,
runs the optimization and prints the summary report.
"""

import logging

import numpy as np

from .config import RunConfig
from .data_models import GAResult, GridIndex
from .engine import GAEngine
from .fitness import JensenWakeEvaluator
from .results import best_layouts


logger = logging.getLogger(__name__)


def run_optimization(run_config: RunConfig, best: int = 3) -> GAResult:
    """
    Optimize a turbine layout on a rectangular grid.

    Args:
        run_config: Validated run configuration
        best: Number of distinct best layouts listed in the summary

    Returns:
        GAResult of the run

    Algorithm:
        1. Build the rectangular grid from run_config.grid
        2. Build the Jensen wake evaluator from run_config.wind and run_config.turbine
        3. Setup RNG (configured seed, or a fresh one that is reported)
        4. Run the engine for ga.iterations generations
        5. Print summary report with the best energy layouts
    """
    print("=" * 70)
    print("WIND FARM LAYOUT OPTIMIZATION")
    print("=" * 70)

    ga_config = run_config.ga
    grid_section = run_config.grid

    grid = GridIndex.from_rectangle(
        grid_section['width'],
        grid_section['height'],
        grid_section['resolution'],
        roughness=grid_section['roughness'],
    )
    print(f"Grid: {grid.n_grids} cells of {grid_section['resolution']:g} m")
    print(f"Wind scenarios: {len(run_config.wind)}")

    evaluator = JensenWakeEvaluator(grid, run_config.wind, run_config.turbine)
    logger.info("Wake decay constant: %.4f", evaluator.wake_decay)

    seed = ga_config.random_seed
    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2**31))
        ga_config.random_seed = seed
    print(f"Random seed: {seed}")
    print()

    engine = GAEngine(ga_config, grid, evaluator, rng=np.random.default_rng(seed))
    result = engine.run()
    result.metadata['random_seed'] = seed

    # Print summary
    print()
    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)
    print(f"Generations: {len(result)}")
    print(f"Final population: {len(result.final_population)} layouts")
    print(f"Best energy: {result.archive.best_energy.energy:.2f} MWh")
    print(f"Best efficiency: {result.archive.best_efficiency.efficiency:.2f}%")

    for rank, table in enumerate(best_layouts(result, best=best, by="energy"), start=1):
        print(f"  #{rank}: energy {table.energy_value:.2f} MWh, "
              f"efficiency {table.efficiency_value:.2f}%, "
              f"cells {table.rect_id.tolist()}")

    return result
