"""Entry point script for the sequential-dependency Stroop task.

This small wrapper simply dispatches to :mod:`stroop_sequential.cli`.  The
experiment can equally be launched with ``python -m stroop_sequential``.
"""
from __future__ import annotations

from stroop_sequential.cli import main


if __name__ == "__main__":
    main()
