from __future__ import annotations

"""Centralized path utilities for the project.

These provide absolute `Path` objects to key directories so storage, logs
and exports never depend on the current working directory.
"""

from pathlib import Path


# The package directory is one level below the project root
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Canonical directories used throughout the project
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"
EXPORTS_DIR = PROJECT_ROOT / "exports"

DEFAULT_CONFIG_FILE = CONFIG_DIR / "engine.yaml"
