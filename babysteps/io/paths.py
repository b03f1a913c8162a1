"""
Path management utilities for the BabySteps workflow.
Provides the standard project folder layout and safe file writes.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

import pandas as pd

logger = logging.getLogger(__name__)


# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Configuration
CONFIG_DIR = PROJECT_ROOT / "config"

# Folder layout, relative to a project root
RAW_DATA_DIR = Path("01-data") / "raw"
PROCESSED_DATA_DIR = Path("01-data") / "processed"
SCRIPTS_DIR = Path("02-scripts")
TABLES_DIR = Path("05-outputs") / "tables"
FIGURES_DIR = Path("05-outputs") / "figures"
ARCHIVE_DIR = Path("99-archive")

PROJECT_DIRS = [
    RAW_DATA_DIR,
    PROCESSED_DATA_DIR,
    SCRIPTS_DIR,
    TABLES_DIR,
    FIGURES_DIR,
    ARCHIVE_DIR,
]

# Permissions applied to written files
FILE_MODE = 0o644

RAW_DATA_FILE = RAW_DATA_DIR / "babysteps-rawdata.csv"
PROCESSED_DATA_FILE = PROCESSED_DATA_DIR / "babysteps.csv"


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists, create if it doesn't."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def init_project(root=".") -> List[Path]:
    """Create the standard folder tree under ``root``.

    Returns the directories that did not exist before the call.
    """
    root = Path(root)
    created = []
    for rel in PROJECT_DIRS:
        target = root / rel
        if not target.is_dir():
            ensure_dir(target)
            created.append(target)
            logger.info("Created %s", target)
    return created


def write_csv_atomic(df, path) -> Path:
    """Write a pandas or polars frame as CSV to ``path`` without ever leaving a partial file.

    The frame is written to a temporary file next to the target and renamed
    into place. Any OSError propagates after the temporary file is removed.
    """
    path = Path(path)
    ensure_dir(path.parent)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    os.close(fd)
    try:
        if isinstance(df, pd.DataFrame):
            df.to_csv(tmp_name, index=False)
        else:
            # polars frames
            df.write_csv(tmp_name)
        os.chmod(tmp_name, FILE_MODE)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    return path
