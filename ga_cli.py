#!/usr/bin/env python3
"""
Wind Farm GA CLI - Minimal entry point.

This is the command-line interface for the wind farm layout optimizer.
All configuration is specified in YAML files.

Usage:
    python3 ga_cli.py run_config.yaml
    python3 ga_cli.py --config run_config.yaml
    python3 ga_cli.py --help

Examples:
    # Optimize 10 turbines on a 2 km x 2 km area with two wind directions
    python3 ga_cli.py examples/basic_run.yaml
"""

import sys
from pathlib import Path

# Add project root to path if needed
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def main():
    """Main entry point for GA CLI."""
    # Handle help
    if len(sys.argv) < 2 or sys.argv[1] in ['-h', '--help', 'help']:
        print(__doc__)
        sys.exit(0 if len(sys.argv) > 1 else 1)

    from windfarm_ga.cli import main as cli_main
    cli_main(sys.argv[1:])


if __name__ == '__main__':
    main()
