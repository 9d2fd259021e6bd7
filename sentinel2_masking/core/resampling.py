"""
Alignment of masks to the grid of the raster they are applied to.

Classification rasters may come at a resolution different from the product
to mask (e.g. a 20 m SCL applied to 10 m bands). In that case the mask is
regridded onto the exact grid of the reference raster.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import Union

import numpy as np
import rasterio
from rasterio.enums import Resampling
from rasterio.warp import reproject

from shared_utils import get_logger


DEFAULT_RESAMPLING = 'nearest'


def get_resampling(method: Union[str, Resampling]) -> Resampling:
    """
    Resolve a resampling kernel name.

    Args:
        method: Name of a rasterio Resampling member (e.g. 'nearest', 'mode', 'min')

    Returns:
        Resampling: Enum member

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(method, Resampling):
        return method
    try:
        return Resampling[method]
    except KeyError:
        raise ValueError(f"Unknown resampling method: {method}")


def same_resolution(path_a: Union[str, Path], path_b: Union[str, Path]) -> bool:
    """Compare the pixel sizes of two rasters, axis by axis."""
    with rasterio.open(path_a) as a, rasterio.open(path_b) as b:
        return bool(np.allclose(np.abs(a.res), np.abs(b.res), rtol=1e-9, atol=0))


def reconcile_resolution(
    mask_path: Union[str, Path],
    reference_path: Union[str, Path],
    output_path: Union[str, Path],
    resampling: Union[str, Resampling] = DEFAULT_RESAMPLING
) -> str:
    """
    Regrid a mask onto the grid of a reference raster if their resolutions differ.

    When resolutions match, the mask is returned unchanged and nothing is
    written. Otherwise the output takes origin, resolution, size and CRS of
    the reference; reference pixels not covered by the mask are set to 0
    (masked).

    Args:
        mask_path: Binary mask
        reference_path: Raster defining the target grid
        output_path: Destination GeoTIFF
        resampling: Resampling kernel

    Returns:
        str: Path of the mask on the reference grid

    Examples:
        >>> mask_10m = reconcile_resolution("scl_mask_20m.tif", "boa_10m.tif", "mask_10m.tif")
    """
    if same_resolution(mask_path, reference_path):
        return str(mask_path)

    logger = get_logger('masking')
    kernel = get_resampling(resampling)

    with rasterio.open(mask_path) as src, rasterio.open(reference_path) as ref:
        logger.debug(f"Resampling mask {mask_path} from {src.res} to {ref.res} ({kernel.name})")
        destination = np.zeros((ref.height, ref.width), dtype=src.dtypes[0])
        reproject(
            source=src.read(1),
            destination=destination,
            src_transform=src.transform,
            src_crs=src.crs,
            dst_transform=ref.transform,
            dst_crs=ref.crs,
            resampling=kernel
        )

        profile = src.profile.copy()
        profile.update(
            driver='GTiff',
            width=ref.width,
            height=ref.height,
            transform=ref.transform,
            crs=ref.crs,
            nodata=None,
            compress='lzw'
        )
        for key in ('blockxsize', 'blockysize', 'tiled'):
            profile.pop(key, None)

    with rasterio.open(output_path, 'w', **profile) as dst:
        dst.write(destination, 1)

    return str(output_path)
