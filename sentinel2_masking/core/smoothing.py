"""
Smoothing and buffering of binary cloud masks.

Masks obtained from the SCL classification are computed pixel by pixel and
have jagged borders. The smoother approximates a morphological closing and
opening with a radius, then applies a signed buffer to the masked area
(positive to enlarge it, negative to reduce it). Each step tags either the
kept (1) or the masked (0) pixels as no-data and fills them from their
neighbours up to a maximum distance:

1. tag 1, fill ``0.75 * radius``
2. tag 0, fill ``2 * radius``
3. tag 1, fill ``1.25 * radius`` plus ``1.5 * buffer`` (positive buffer)
   or ``buffer`` (negative buffer)
4. only with a positive buffer: tag 0, fill ``buffer / 2``
5. remove the no-data tag

Distances are given in the unit of the mask CRS and converted to pixels with
the mean pixel size. Every stage writes a new file in the scratch directory.

Author: Diego Bengochea
"""

import uuid
from pathlib import Path
from typing import Mapping, Optional, Union

import numpy as np
import rasterio

from shared_utils import get_logger, ensure_directory

from .raster_tools import RasterTools, get_raster_tools


def mask_resolution(mask_path: Union[str, Path]) -> float:
    """Mean pixel size of a raster, in the unit of its CRS."""
    with rasterio.open(mask_path) as src:
        return float(np.mean(np.abs(src.res)))


def smooth_mask(
    inmask: Union[str, Path],
    tmpdir: Union[str, Path],
    radius: float = 250,
    buffer: float = 250,
    binpaths: Optional[Mapping[str, Optional[str]]] = None,
    tools: Optional[RasterTools] = None
) -> str:
    """
    Smooth and buffer a 0-1 mask (0 = masked, 1 = clear).

    Args:
        inmask: Path of the input binary mask
        tmpdir: Directory where intermediate files are created
        radius: Smoothing radius (positive, in the unit of the mask)
        buffer: Buffer applied to the masked area after smoothing
            (positive to enlarge, negative to reduce)
        binpaths: Paths of 'gdal_translate' and 'gdal_fillnodata'; when not
            given the in-process rasterio backend is used
        tools: Explicit tool backend, overrides ``binpaths``

    Returns:
        str: Path of the smoothed mask

    Examples:
        >>> smoothed = smooth_mask("mask.tif", "/tmp/scratch", radius=100, buffer=50)
    """
    logger = get_logger('masking')
    tools = tools or get_raster_tools(binpaths)
    tmpdir = ensure_directory(tmpdir)

    res = mask_resolution(inmask)
    radius_npx = radius / res
    buffer_npx = buffer / res

    base = tmpdir / f"mask_{uuid.uuid4().hex}"
    stage = 0

    def next_path() -> str:
        nonlocal stage
        stage += 1
        return f"{base}_{stage}.tif"

    def fill_pass(src: str, tagged_value: int, max_distance: float) -> str:
        tagged = tools.set_nodata(src, next_path(), tagged_value)
        logger.debug(f"Filling value {tagged_value} up to {max_distance} pixels")
        return tools.fill_nodata(tagged, next_path(), max_distance, smoothing_iterations=0)

    current = fill_pass(str(inmask), 1, radius_npx * 3 / 4)
    current = fill_pass(current, 0, radius_npx * 2)
    current = fill_pass(
        current, 1,
        radius_npx * 5 / 4 + (buffer_npx * 3 / 2 if buffer_npx > 0 else buffer_npx)
    )
    if buffer_npx > 0:
        current = fill_pass(current, 0, buffer_npx / 2)

    smoothed = tools.set_nodata(current, next_path(), None)
    logger.debug(f"Smoothed mask {inmask} (radius {radius_npx} px, buffer {buffer_npx} px): {smoothed}")
    return smoothed
