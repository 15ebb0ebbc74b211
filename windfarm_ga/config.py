"""
Configuration loading and validation for the wind farm GA.

Run configurations are YAML files with the sections ``ga``, ``grid``,
``turbine`` and ``wind``. Everything is validated before the first
generation runs.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml


SELECTION_MODES = ("FIX", "VAR")
CROSSOVER_MODES = ("EQU", "RAN")

# Largest segment count whose combination index still fits in int64.
MAX_SEGMENTS = 62


class ConfigValidationError(ValueError):
    """Raised when run configuration is invalid."""
    pass


@dataclass
class GAConfig:
    """Parameters of one optimization run."""
    n_turbines: int = 10
    iterations: int = 100
    mutation_rate: float = 0.008
    elitism: bool = True
    n_elite: int = 6
    selection_mode: str = "FIX"
    crossover_mode: str = "EQU"
    crossover_rate: float = 2.0
    uplimit: int = 300
    trim_force: bool = True
    n_start: int = 20
    random_seed: Optional[int] = None

    # Selection tuning
    selection_fraction: float = 0.5
    var_fraction_bounds: Tuple[float, float] = (0.2, 0.8)
    dispersion_scale: float = 0.05

    # Crossover and mutation tuning
    exclude_parent_clones: bool = True
    variable_mutation_range: Tuple[float, float] = (0.03, 0.1)

    # Repair weighting exponent on the park fitness term
    repair_exponent: float = 0.5

    verbose: bool = False

    def __post_init__(self):
        self.selection_mode = str(self.selection_mode).upper()
        self.crossover_mode = str(self.crossover_mode).upper()
        self.var_fraction_bounds = tuple(self.var_fraction_bounds)
        self.variable_mutation_range = tuple(self.variable_mutation_range)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GAConfig":
        """
        Create a GAConfig from the ``ga`` section of a run configuration.

        Args:
            data: Mapping of GAConfig field names to values (may be None)

        Returns:
            GAConfig instance

        Raises:
            ConfigValidationError: If an unknown key is present
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigValidationError(f"Unknown GA configuration keys: {unknown}")
        return cls(**data)

    def validate(self, n_grids: Optional[int] = None) -> None:
        """
        Validate all parameters.

        Args:
            n_grids: Number of grid cells; enables the feasibility check
                ``n_turbines <= n_grids`` when given

        Raises:
            ConfigValidationError: If any parameter is invalid
        """
        if self.selection_mode not in SELECTION_MODES:
            raise ConfigValidationError(
                f"Invalid selection_mode: '{self.selection_mode}'. "
                f"Must be one of {list(SELECTION_MODES)}"
            )

        if self.crossover_mode not in CROSSOVER_MODES:
            raise ConfigValidationError(
                f"Invalid crossover_mode: '{self.crossover_mode}'. "
                f"Must be one of {list(CROSSOVER_MODES)}"
            )

        _require_int(self.n_turbines, "n_turbines", minimum=1)
        _require_int(self.iterations, "iterations", minimum=1)
        _require_int(self.uplimit, "uplimit", minimum=1)
        _require_int(self.n_start, "n_start", minimum=2)

        if self.elitism:
            _require_int(self.n_elite, "n_elite", minimum=1)
        else:
            _require_int(self.n_elite, "n_elite", minimum=0)

        if not isinstance(self.elitism, bool):
            raise ConfigValidationError(f"'elitism' must be a boolean, got: {self.elitism!r}")
        if not isinstance(self.trim_force, bool):
            raise ConfigValidationError(f"'trim_force' must be a boolean, got: {self.trim_force!r}")

        _require_probability(self.mutation_rate, "mutation_rate")
        _require_probability(self.selection_fraction, "selection_fraction", allow_zero=False)

        _require_number(self.crossover_rate, "crossover_rate")
        if not 1.0 < self.crossover_rate <= MAX_SEGMENTS:
            raise ConfigValidationError(
                f"'crossover_rate' must be in (1, {MAX_SEGMENTS}], got: {self.crossover_rate}"
            )

        low, high = _require_pair(self.var_fraction_bounds, "var_fraction_bounds")
        if not 0.0 < low <= high <= 1.0:
            raise ConfigValidationError(
                f"'var_fraction_bounds' must satisfy 0 < low <= high <= 1, got: {self.var_fraction_bounds}"
            )

        _require_number(self.dispersion_scale, "dispersion_scale")
        if self.dispersion_scale <= 0:
            raise ConfigValidationError(
                f"'dispersion_scale' must be positive, got: {self.dispersion_scale}"
            )

        low, high = _require_pair(self.variable_mutation_range, "variable_mutation_range")
        if not 0.0 <= low <= high <= 1.0:
            raise ConfigValidationError(
                f"'variable_mutation_range' must satisfy 0 <= low <= high <= 1, "
                f"got: {self.variable_mutation_range}"
            )

        _require_number(self.repair_exponent, "repair_exponent")
        if self.repair_exponent < 0:
            raise ConfigValidationError(
                f"'repair_exponent' must be non-negative, got: {self.repair_exponent}"
            )

        if n_grids is not None and self.n_turbines > n_grids:
            raise ConfigValidationError(
                f"n_turbines ({self.n_turbines}) exceeds the number of grid cells ({n_grids}); "
                f"placement is infeasible"
            )


@dataclass
class TurbineConfig:
    """Turbine parameters used by the reference wake evaluator."""
    rotor_radius: float = 30.0
    thrust_coefficient: float = 0.88
    rated_power: float = 3000.0
    cut_in_speed: float = 3.0
    rated_speed: float = 13.0
    cut_out_speed: float = 25.0
    hub_height: float = 100.0
    reference_height: float = 50.0
    # None derives the decay constant from surface roughness
    wake_decay: Optional[float] = None


@dataclass
class RunConfig:
    """A fully parsed run configuration."""
    ga: GAConfig
    grid: Dict[str, float]
    turbine: TurbineConfig
    wind: List[Dict[str, float]]
    log_level: str = "INFO"
    metadata: Dict[str, Any] = field(default_factory=dict)


def load_run_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load run configuration from YAML file.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        Dictionary containing run configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If the file is not valid YAML or is empty
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in configuration file: {e}")

    if config is None:
        raise ConfigValidationError("Configuration file is empty")

    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration file must contain a mapping at the top level")

    return config


def validate_run_config(config: Dict[str, Any]) -> RunConfig:
    """
    Validate run configuration structure and convert it to a RunConfig.

    Args:
        config: Raw run configuration dictionary

    Returns:
        RunConfig with a validated GAConfig

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    for section in ('ga', 'grid', 'wind'):
        if section not in config:
            raise ConfigValidationError(f"Missing required field: '{section}'")

    if not isinstance(config['ga'], dict):
        raise ConfigValidationError("'ga' must be a dictionary")

    ga_section = dict(config['ga'])
    # Top-level conveniences shared with the other sections
    for key in ('random_seed', 'verbose'):
        if key in config and key not in ga_section:
            ga_section[key] = config[key]

    try:
        ga_config = GAConfig.from_dict(ga_section)
    except TypeError as e:
        raise ConfigValidationError(f"Invalid GA configuration: {e}")

    grid = _validate_grid_section(config['grid'])
    wind = _validate_wind_section(config['wind'])

    turbine_section = config.get('turbine') or {}
    if not isinstance(turbine_section, dict):
        raise ConfigValidationError("'turbine' must be a dictionary")
    try:
        turbine = TurbineConfig(**turbine_section)
    except TypeError as e:
        raise ConfigValidationError(f"Invalid turbine configuration: {e}")
    if turbine.rotor_radius <= 0:
        raise ConfigValidationError("'turbine.rotor_radius' must be positive")
    if not 0.0 < turbine.thrust_coefficient < 1.0:
        raise ConfigValidationError("'turbine.thrust_coefficient' must be in (0, 1)")

    n_grids = int(grid['width'] // grid['resolution']) * int(grid['height'] // grid['resolution'])
    if n_grids <= 0:
        raise ConfigValidationError(
            f"Grid {grid['width']} x {grid['height']} holds no cell of size {grid['resolution']}"
        )
    ga_config.validate(n_grids)

    log_level = str(config.get('log_level', 'INFO')).upper()

    return RunConfig(
        ga=ga_config,
        grid=grid,
        turbine=turbine,
        wind=wind,
        log_level=log_level,
        metadata={'n_grids': n_grids},
    )


def _validate_grid_section(grid: Any) -> Dict[str, float]:
    if not isinstance(grid, dict):
        raise ConfigValidationError("'grid' must be a dictionary")

    for key in ('width', 'height', 'resolution'):
        if key not in grid:
            raise ConfigValidationError(f"Missing required field: 'grid.{key}'")
        value = grid[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigValidationError(f"'grid.{key}' must be a positive number, got: {value}")

    return {
        'width': float(grid['width']),
        'height': float(grid['height']),
        'resolution': float(grid['resolution']),
        'roughness': float(grid.get('roughness', 0.14)),
    }


def _validate_wind_section(wind: Any) -> List[Dict[str, float]]:
    if not isinstance(wind, list) or not wind:
        raise ConfigValidationError("'wind' must be a non-empty list of {ws, wd, probab} entries")

    entries = []
    for i, entry in enumerate(wind):
        if not isinstance(entry, dict) or 'ws' not in entry or 'wd' not in entry:
            raise ConfigValidationError(f"'wind[{i}]' must define 'ws' and 'wd'")
        ws = float(entry['ws'])
        if ws < 0:
            raise ConfigValidationError(f"'wind[{i}].ws' must be non-negative, got: {ws}")
        probab = float(entry.get('probab', 100.0 / len(wind)))
        if probab < 0:
            raise ConfigValidationError(f"'wind[{i}].probab' must be non-negative, got: {probab}")
        entries.append({'ws': ws, 'wd': float(entry['wd']) % 360.0, 'probab': probab})

    if sum(e['probab'] for e in entries) <= 0:
        raise ConfigValidationError("Wind direction probabilities must not all be zero")

    return entries


def _require_int(value: Any, name: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigValidationError(f"'{name}' must be an integer >= {minimum}, got: {value}")


def _require_number(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"'{name}' must be a number, got: {value!r}")


def _require_probability(value: Any, name: str, allow_zero: bool = True) -> None:
    _require_number(value, name)
    lower_ok = value >= 0 if allow_zero else value > 0
    if not (lower_ok and value <= 1):
        raise ConfigValidationError(f"'{name}' must be within [0, 1], got: {value}")


def _require_pair(value: Any, name: str) -> Tuple[float, float]:
    if len(value) != 2:
        raise ConfigValidationError(f"'{name}' must contain exactly two values, got: {value}")
    return float(value[0]), float(value[1])
