"""
Masking policies and binary mask construction from classification rasters.

A masking policy maps each required ancillary product type to the set of
class codes that must be suppressed. Binary masks use 1 for pixels to keep
and 0 for pixels to suppress.

SCL codes: 0 no data, 1 saturated/defective, 2 dark area, 3 cloud shadow,
4 vegetation, 5 bare soil, 6 water, 7 unclassified, 8 cloud medium
probability, 9 cloud high probability, 10 thin cirrus, 11 snow.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Sequence, Union

import numpy as np
import rasterio

from .errors import UnsupportedPolicyError


MASK_POLICIES: Dict[str, Dict[str, FrozenSet[int]]] = {
    'nodata': {'SCL': frozenset({0})},
    'cloud_high_proba': {'SCL': frozenset({0, 9})},
    'cloud_medium_proba': {'SCL': frozenset({0, 8, 9})},
    'cloud_low_proba': {'SCL': frozenset({0, 7, 8, 9})},
    'cloud_and_shadow': {'SCL': frozenset({0, 3, 7, 8, 9})},
    'cloud_shadow_cirrus': {'SCL': frozenset({0, 3, 7, 8, 9, 10})},
}

UNIMPLEMENTED_POLICIES = frozenset({'opaque_clouds'})

MASK_PROFILE = {
    'driver': 'GTiff',
    'dtype': 'uint8',
    'count': 1,
    'nodata': None,
    'compress': 'lzw',
}


def get_mask_policy(mask_type: str) -> Dict[str, FrozenSet[int]]:
    """
    Resolve a masking policy name to its suppressed class codes.

    Args:
        mask_type: Policy name (case-sensitive)

    Returns:
        dict: Ancillary product type -> suppressed class codes

    Raises:
        UnsupportedPolicyError: If the policy is unknown or not implemented

    Examples:
        >>> get_mask_policy('cloud_high_proba')
        {'SCL': frozenset({0, 9})}
    """
    if mask_type in UNIMPLEMENTED_POLICIES:
        raise UnsupportedPolicyError(f"Mask type '{mask_type}' has not been implemented yet.")
    if mask_type not in MASK_POLICIES:
        raise UnsupportedPolicyError(
            f"Unknown mask type '{mask_type}'; accepted values are: {', '.join(MASK_POLICIES)}"
        )
    return dict(MASK_POLICIES[mask_type])


def classify_keep(values: np.ndarray, masked_values: Iterable[int]) -> np.ndarray:
    """Return a uint8 array with 0 where ``values`` is a suppressed code, 1 elsewhere."""
    return (~np.isin(values, list(masked_values))).astype('uint8')


def combine_keep_arrays(arrays: Sequence[np.ndarray]) -> np.ndarray:
    """A pixel is kept only if every layer keeps it."""
    return np.logical_and.reduce([np.asarray(a, dtype=bool) for a in arrays]).astype('uint8')


def _mask_profile(src) -> dict:
    profile = dict(MASK_PROFILE)
    profile.update(
        width=src.width,
        height=src.height,
        crs=src.crs,
        transform=src.transform
    )
    return profile


def build_binary_mask(
    classification_path: Union[str, Path],
    masked_values: Iterable[int],
    output_path: Union[str, Path]
) -> str:
    """
    Write the binary mask of a classification raster.

    Args:
        classification_path: Single-band classification raster (e.g. SCL)
        masked_values: Class codes to suppress
        output_path: Destination GeoTIFF

    Returns:
        str: Path of the written mask
    """
    masked_values = list(masked_values)
    with rasterio.open(classification_path) as src:
        profile = _mask_profile(src)
        with rasterio.open(output_path, 'w', **profile) as dst:
            for _, window in src.block_windows(1):
                dst.write(classify_keep(src.read(1, window=window), masked_values), 1, window=window)
    return str(output_path)


def combine_binary_masks(mask_paths: Sequence[Union[str, Path]], output_path: Union[str, Path]) -> str:
    """
    Merge per-layer binary masks with a logical AND of their keep indicators.

    With a single layer the mask is returned unchanged and nothing is written.

    Args:
        mask_paths: Binary masks on the same grid
        output_path: Destination GeoTIFF for the combined mask

    Returns:
        str: Path of the combined mask

    Raises:
        ValueError: If no mask is given or the masks do not share a grid
    """
    if not mask_paths:
        raise ValueError("At least one mask is required")
    if len(mask_paths) == 1:
        return str(mask_paths[0])

    sources = [rasterio.open(p) for p in mask_paths]
    try:
        reference = sources[0]
        for src in sources[1:]:
            if src.shape != reference.shape or src.transform != reference.transform:
                raise ValueError(f"Mask {src.name} is not on the grid of {reference.name}")

        with rasterio.open(output_path, 'w', **_mask_profile(reference)) as dst:
            for _, window in reference.block_windows(1):
                layers: List[np.ndarray] = [src.read(1, window=window) for src in sources]
                dst.write(combine_keep_arrays(layers), 1, window=window)
    finally:
        for src in sources:
            src.close()

    return str(output_path)
