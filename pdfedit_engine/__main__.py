"""Entry point for running pdfedit_engine as a module.

Usage:
    python -m pdfedit_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
