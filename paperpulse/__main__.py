"""Entry point for running paperpulse as a module or installed script.

Usage:
    paperpulse / python -m paperpulse         → JSON API (uvicorn)
    paperpulse <command> ... / python -m paperpulse <command> ... → CLI
"""

import sys


def run() -> None:
    """Entry point: no args → API server, else → CLI."""
    from paperpulse.cli import run_cli, serve, setup_logging

    if len(sys.argv) == 1:
        setup_logging()
        serve()
    else:
        sys.exit(run_cli())


if __name__ == "__main__":
    run()
