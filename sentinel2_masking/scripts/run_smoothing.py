#!/usr/bin/env python3
"""
Mask Smoothing Script

Smooths and buffers a single 0-1 mask raster (0 = masked, 1 = clear).

Usage Examples:
    # In-process smoothing
    python -m sentinel2_masking.scripts.run_smoothing mask.tif --radius 100 --buffer 50

    # Using the GDAL command line utilities
    python -m sentinel2_masking.scripts.run_smoothing mask.tif --radius 100 \
        --gdal-translate /usr/bin/gdal_translate --gdal-fillnodata /usr/bin/gdal_fillnodata.py

Author: Diego Bengochea
"""

import argparse
import shutil
import sys
import tempfile
from pathlib import Path

from shared_utils import setup_logging, get_logger

from sentinel2_masking.core.errors import ExternalToolError
from sentinel2_masking.core.smoothing import smooth_mask


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Smooth and buffer a binary cloud mask")
    parser.add_argument('mask', type=str, help='Input 0-1 mask raster')
    parser.add_argument('--output', '-o', type=str, help='Output path (default: <mask>_smooth.tif)')
    parser.add_argument('--radius', type=float, default=250, help='Smoothing radius in map units')
    parser.add_argument('--buffer', type=float, default=250, help='Buffer of the masked area in map units')
    parser.add_argument('--tmpdir', type=str, help='Directory for intermediate files')
    parser.add_argument('--gdal-translate', type=str, help='Path of gdal_translate')
    parser.add_argument('--gdal-fillnodata', type=str, help='Path of gdal_fillnodata.py')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point for the smoothing script.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    args = parse_arguments(argv)
    setup_logging(level='INFO', component_name='masking')
    logger = get_logger('masking')

    mask = Path(args.mask)
    if not mask.is_file():
        logger.error(f"Mask file does not exist: {mask}")
        return 1
    output = Path(args.output) if args.output else mask.with_name(f"{mask.stem}_smooth.tif")

    binpaths = {'gdal_translate': args.gdal_translate, 'gdal_fillnodata': args.gdal_fillnodata}
    scratch = Path(tempfile.mkdtemp(prefix='s2smooth_', dir=args.tmpdir))

    try:
        smoothed = smooth_mask(mask, scratch, radius=args.radius, buffer=args.buffer, binpaths=binpaths)
        shutil.move(smoothed, output)
    except ExternalToolError as e:
        logger.error(f"Smoothing failed: {e}")
        return 1
    finally:
        shutil.rmtree(scratch, ignore_errors=True)

    logger.info(f"Smoothed mask written to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
