"""
Path utilities for the Sentinel-2 preprocessing tools.

This module provides consistent path handling, file discovery, and directory
management across all pipeline components.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import List, Union
import logging


def ensure_directory(path: Union[str, Path], parents: bool = True) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to create
        parents: Whether to create parent directories

    Returns:
        Path: Created directory path

    Examples:
        >>> output_dir = ensure_directory("masked/BOA")
    """
    path = Path(path)
    path.mkdir(parents=parents, exist_ok=True)
    return path


def find_files(
    directory: Union[str, Path],
    pattern: str = "*",
    recursive: bool = True
) -> List[Path]:
    """
    Find files matching pattern in directory.

    Args:
        directory: Directory to search in
        pattern: Glob pattern to match
        recursive: Whether to search recursively

    Returns:
        List[Path]: Sorted list of matching file paths

    Examples:
        >>> tif_files = find_files("data", "S2*_*.tif", recursive=False)
        >>> all_files = find_files("data/sentinel2")
    """
    directory = Path(directory)

    if not directory.exists():
        logging.warning(f"Directory does not exist: {directory}")
        return []

    if recursive:
        files = list(directory.rglob(pattern))
    else:
        files = list(directory.glob(pattern))

    files = [f for f in files if f.is_file()]

    return sorted(files)


def validate_file_exists(path: Union[str, Path], description: str = "") -> Path:
    """
    Validate that file exists and return Path object.

    Args:
        path: File path to validate
        description: Description for error messages

    Returns:
        Path: Validated file path

    Raises:
        FileNotFoundError: If file doesn't exist

    Examples:
        >>> infile = validate_file_exists("S2A2A_20200101_022_32TNR_BOA_10.tif", "Input raster")
    """
    path = Path(path)

    if not path.is_file():
        desc = f" ({description})" if description else ""
        raise FileNotFoundError(f"File not found{desc}: {path}")

    return path
