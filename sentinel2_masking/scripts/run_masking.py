#!/usr/bin/env python3
"""
Sentinel-2 Cloud Masking Script

Command-line interface for the cloud masking pipeline. Products and SCL
rasters are discovered in the configured directories; command-line options
override the configuration.

Usage Examples:
    # Run with default configuration
    python -m sentinel2_masking.scripts.run_masking

    # Use custom configuration
    python -m sentinel2_masking.scripts.run_masking --config custom.yaml

    # Override policy and directories, smooth masks, use worker processes
    python -m sentinel2_masking.scripts.run_masking --mask-type cloud_and_shadow \
        --input-dir /data/translated --output-dir /data/masked \
        --smooth 100 --buffer 50 --parallel

Author: Diego Bengochea
"""

import argparse
import sys
from pathlib import Path

# Shared utilities
from shared_utils import setup_logging, get_logger, load_config, get_config_value

# Component imports
from sentinel2_masking.core.errors import MaskingError
from sentinel2_masking.core.mask_builder import MASK_POLICIES
from sentinel2_masking.core.masking_pipeline import S2MaskingPipeline


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Sentinel-2 Cloud Masking Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: sentinel2_masking/config.yaml)'
    )
    parser.add_argument('--input-dir', type=str, help='Directory with the products to mask')
    parser.add_argument('--classification-dir', type=str, help='Directory with the SCL rasters')
    parser.add_argument('--output-dir', type=str, help='Output directory')
    parser.add_argument(
        '--mask-type',
        type=str,
        help=f"Masking policy ({', '.join(MASK_POLICIES)})"
    )
    parser.add_argument('--format', type=str, help='GDAL driver of the outputs')
    parser.add_argument('--compress', type=str, help='GeoTIFF compression')
    parser.add_argument('--smooth', type=float, help='Smoothing radius in map units')
    parser.add_argument('--buffer', type=float, help='Buffer of the masked area in map units')
    parser.add_argument('--parallel', action='store_true', default=None, help='Use worker processes')
    parser.add_argument('--overwrite', action='store_true', default=None, help='Overwrite existing outputs')

    subdirs = parser.add_mutually_exclusive_group()
    subdirs.add_argument('--subdirs', dest='subdirs', action='store_true', default=None,
                         help='Put outputs in per-product-type subdirectories')
    subdirs.add_argument('--no-subdirs', dest='subdirs', action='store_false',
                         help='Put all outputs in the output directory')

    return parser.parse_args(argv)


def validate_arguments(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        bool: True if arguments are valid
    """
    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file does not exist: {args.config}")
        return False

    if args.smooth is not None and args.smooth < 0:
        print("Error: --smooth must be positive")
        return False

    return True


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Override configuration values with the options given on the command line."""
    overrides = {
        ('paths', 'input_dir'): args.input_dir,
        ('paths', 'classification_dir'): args.classification_dir,
        ('paths', 'output_dir'): args.output_dir,
        ('masking', 'mask_type'): args.mask_type,
        ('masking', 'format'): args.format,
        ('masking', 'compress'): args.compress,
        ('masking', 'subdirs'): args.subdirs,
        ('masking', 'parallel'): args.parallel,
        ('masking', 'overwrite'): args.overwrite,
        ('smoothing', 'radius'): args.smooth,
        ('smoothing', 'buffer'): args.buffer,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            config.setdefault(section, {})[key] = value
    return config


def main(argv=None) -> int:
    """
    Main entry point for the masking script.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    args = parse_arguments(argv)

    if not validate_arguments(args):
        return 1

    config = apply_overrides(load_config(args.config, component_name='sentinel2_masking'), args)
    setup_logging(
        level=get_config_value(config, 'logging.level', 'INFO'),
        component_name='masking',
        log_file=get_config_value(config, 'logging.log_file')
    )
    logger = get_logger('masking')

    try:
        report = S2MaskingPipeline(config=config).run()
    except MaskingError as e:
        logger.error(f"Masking pipeline failed: {e}")
        return 1

    return 0 if not report.failed else 1


if __name__ == "__main__":
    sys.exit(main())
