# src/antigravity_adapter/utils/paths.py
"""
Centralized path management for the adapter.

Supports two runtime modes:
1. PyInstaller EXE -> files in the directory containing the executable
2. Script/Library  -> files in the current working directory (overridable)

Set ANTIGRAVITY_DATA_DIR to point the adapter at another root.
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union


def get_default_root() -> Path:
    """
    Get the default root directory for .env, config.yaml and logs.

    Returns:
        Path to the root directory
    """
    override = os.getenv("ANTIGRAVITY_DATA_DIR")
    if override:
        return Path(override)
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path.cwd()


def get_logs_dir(root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the logs directory, creating it if needed.

    Args:
        root: Optional root directory. If None, uses get_default_root().
    """
    base = Path(root) if root else get_default_root()
    logs_dir = base / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_data_file(filename: str, root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the path to a data file in the root directory (e.g. ".env", "config.yaml").

    Does not create the file.
    """
    base = Path(root) if root else get_default_root()
    return base / filename
