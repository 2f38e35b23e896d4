"""Entry point for running profilekit as a module.

Usage:
    python -m profilekit run dps -a
    python -m profilekit --help
"""

from profilekit.cli import app

if __name__ == "__main__":
    app()
