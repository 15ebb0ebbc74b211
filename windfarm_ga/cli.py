"""
CLI module for the wind farm GA.

Loads a run configuration, configures logging and starts the optimization.
"""

import sys
from typing import List, Optional

from .config import load_run_config, validate_run_config
from .data_models import GAResult
from .logger import configure_logging


USAGE = """\
Usage:
    windfarm-ga run_config.yaml
    windfarm-ga --config run_config.yaml
    windfarm-ga --help
"""


def run_from_config(config_path: str) -> GAResult:
    """
    Load run configuration and run the optimization.

    This is the main entry point called by ga_cli.py.

    Args:
        config_path: Path to run configuration YAML file

    Returns:
        GAResult of the run

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
        Exceptions raised by the fitness evaluator
    """
    print(f"Loading configuration from: {config_path}")
    config = load_run_config(config_path)

    print("Validating configuration...")
    run_config = validate_run_config(config)

    configure_logging(run_config.log_level)

    from .orchestration import run_optimization
    result = run_optimization(run_config)

    print("\nRun completed successfully!")
    return result


def parse_config_path(argv: List[str]) -> Optional[str]:
    """
    Extract the configuration path from command line arguments.

    Returns:
        The path, or None if help was requested or no argument was given
    """
    if not argv or argv[0] in ['-h', '--help', 'help']:
        return None

    config_path = argv[0]
    if config_path.startswith('--config='):
        return config_path.split('=', 1)[1]
    if config_path == '--config':
        return argv[1] if len(argv) > 1 else None
    return config_path


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the windfarm-ga console script."""
    argv = sys.argv[1:] if argv is None else argv

    config_path = parse_config_path(argv)
    if config_path is None:
        print(USAGE)
        sys.exit(0 if argv and argv[0] != '--config' else 1)

    try:
        run_from_config(config_path)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)
