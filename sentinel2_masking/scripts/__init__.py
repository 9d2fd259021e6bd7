"""
Sentinel-2 Masking Executable Scripts

Command-line entry points for the masking workflows.

Scripts:
    run_masking.py: Configuration-driven batch masking
    run_smoothing.py: Smoothing and buffering of a single mask

Author: Diego Bengochea
"""

from .run_masking import main as run_masking
from .run_smoothing import main as run_smoothing

__all__ = [
    "run_masking",
    "run_smoothing"
]
