"""
Entry point for running hifz-planner as a module.

Usage:
    python -m hifz_planner today
    python -m hifz_planner backlog status
    python -m hifz_planner --help
"""
from .delivery.cli import main

if __name__ == "__main__":
    main()
