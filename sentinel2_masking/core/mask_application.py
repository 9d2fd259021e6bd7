"""
Application of binary masks to multi-band rasters.

Masked pixels (mask value 0) are set to the no-data value of the input in
every band; all other pixels are copied unchanged. Outputs keep grid, CRS,
band count and data type of the input; format and compression are chosen
by the caller.

Output files are first written under a temporary name next to their final
location, then moved into place together with their sidecar files, so that
an interrupted write never leaves a file that looks complete.

Author: Diego Bengochea
"""

import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import rasterio
from rasterio.drivers import raster_driver_extensions
from rasterio.drvsupport import supported_drivers

from shared_utils import get_logger

from .errors import UnsupportedFormatError


# Drivers whose canonical extension is not (uniquely) declared by GDAL
FORMAT_EXTENSIONS = {
    'GTiff': 'tif',
    'ENVI': 'dat',
}

# Non-physical input formats and the format used for their outputs
FORMAT_REPLACEMENTS = {
    'VRT': 'GTiff',
}

COMPRESSIBLE_FORMATS = {'GTiff'}

# Sidecars named by appending a suffix to the payload name
APPENDED_SIDECARS = ('.aux.xml', '.ovr', '.msk')
# Sidecars named by replacing the payload extension (ENVI headers)
REPLACED_SIDECARS = ('.hdr',)


@dataclass
class MaskedProduct:
    """Result of masking one raster."""
    path: str
    masked_fraction: float


def available_formats() -> Dict[str, str]:
    """GDAL drivers available to rasterio (short name -> long name)."""
    with rasterio.Env() as env:
        return env.drivers()


def writable_formats() -> List[str]:
    """Available raster drivers that rasterio can create files with."""
    return sorted(
        driver for driver in available_formats()
        if 'w' in supported_drivers.get(driver, '')
    )


def check_output_format(driver: str) -> str:
    """
    Check that a GDAL driver is available and can write rasters.

    Args:
        driver: GDAL driver short name (e.g. 'GTiff', 'ENVI')

    Returns:
        str: The driver name

    Raises:
        UnsupportedFormatError: If the driver is missing, read-only or not a raster driver
    """
    if driver not in writable_formats():
        raise UnsupportedFormatError(
            f"Format '{driver}' is not recognised; use one of the formats supported "
            f"by your GDAL installation (see `rio --gdal-version` and `gdalinfo --formats`)."
        )
    return driver


def driver_extension(driver: str) -> str:
    """
    Canonical file extension of a GDAL driver.

    Examples:
        >>> driver_extension('GTiff')
        'tif'
        >>> driver_extension('ENVI')
        'dat'
    """
    if driver in FORMAT_EXTENSIONS:
        return FORMAT_EXTENSIONS[driver]
    for ext, ext_driver in raster_driver_extensions().items():
        if ext_driver == driver:
            return ext
    return driver.lower()


def output_driver(infile: Union[str, Path], format: Optional[str] = None) -> str:
    """
    Driver used to write the masked version of ``infile``.

    The requested format wins; otherwise the input format is kept, except for
    non-physical formats (VRT) which are replaced by GeoTIFF.
    """
    if format:
        driver = format
    else:
        with rasterio.open(infile) as src:
            driver = src.driver
    return FORMAT_REPLACEMENTS.get(driver, driver)


def default_nodata(dtype: str) -> float:
    """No-data sentinel for rasters that declare none."""
    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.floating):
        return float('nan')
    if np.issubdtype(dtype, np.signedinteger):
        return int(np.iinfo(dtype).min)
    return 0


def output_filename(infile: Union[str, Path], outdir: Union[str, Path], file_ext: str, driver: str) -> Path:
    """Name of the masked output: input basename with the driver extension."""
    name = Path(infile).name
    if file_ext and name.endswith(f".{file_ext}"):
        name = name[:-(len(file_ext) + 1)]
    return Path(outdir) / f"{name}.{driver_extension(driver)}"


def _sidecar_pairs(path: Path, target: Path):
    for suffix in APPENDED_SIDECARS:
        yield Path(f"{path}{suffix}"), Path(f"{target}{suffix}")
    for ext in REPLACED_SIDECARS:
        if path.suffix != ext:
            yield path.with_suffix(ext), target.with_suffix(ext)


def is_sidecar(path: Union[str, Path]) -> bool:
    """Whether a file is an auxiliary file of a raster rather than a raster."""
    path = Path(path)
    return path.name.endswith(APPENDED_SIDECARS) or path.suffix in REPLACED_SIDECARS


def _remove_path(path: Path) -> None:
    # Some drivers write a directory in place of a single file
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def remove_raster(path: Union[str, Path]) -> None:
    """Delete a raster file (or dataset directory) and its sidecars."""
    path = Path(path)
    for sidecar, _ in _sidecar_pairs(path, path):
        _remove_path(sidecar)
    _remove_path(path)


def move_raster(src: Union[str, Path], dst: Union[str, Path]) -> str:
    """Rename a raster file together with its sidecars."""
    src, dst = Path(src), Path(dst)
    for sidecar, target in _sidecar_pairs(src, dst):
        if sidecar.exists():
            os.replace(sidecar, target)
    os.replace(src, dst)
    return str(dst)


def _output_profile(src, driver: str, nodata: float, compress: Optional[str]) -> dict:
    profile = {
        'driver': driver,
        'dtype': src.dtypes[0],
        'count': src.count,
        'width': src.width,
        'height': src.height,
        'crs': src.crs,
        'transform': src.transform,
        'nodata': nodata,
    }
    if driver in COMPRESSIBLE_FORMATS and compress and compress.upper() != 'NONE':
        profile['compress'] = compress
    return profile


def apply_mask(
    infile: Union[str, Path],
    maskfile: Union[str, Path],
    outfile: Union[str, Path],
    driver: str = 'GTiff',
    compress: Optional[str] = 'DEFLATE',
    overwrite: bool = False
) -> MaskedProduct:
    """
    Write a copy of ``infile`` with the pixels masked by ``maskfile`` set to no-data.

    Args:
        infile: Multi-band input raster
        maskfile: Binary mask on the grid of ``infile`` (0 = masked)
        outfile: Output path
        driver: GDAL driver of the output
        compress: Compression (GeoTIFF outputs only)
        overwrite: Replace an existing output

    Returns:
        MaskedProduct: Output path and fraction of masked pixels

    Raises:
        FileExistsError: If ``outfile`` exists and ``overwrite`` is False
        ValueError: If the mask is not on the grid of the input
    """
    logger = get_logger('masking')
    outfile = Path(outfile)

    if outfile.exists() and not overwrite:
        raise FileExistsError(f"Output file already exists: {outfile}")

    staged = outfile.with_name(f".{outfile.stem}.{uuid.uuid4().hex[:8]}.part{outfile.suffix}")
    masked_count = 0

    try:
        with rasterio.open(infile) as src, rasterio.open(maskfile) as mask:
            if mask.shape != src.shape or mask.transform != src.transform:
                raise ValueError(f"Mask {maskfile} is not on the grid of {infile}")

            nodata = src.nodata if src.nodata is not None else default_nodata(src.dtypes[0])
            profile = _output_profile(src, driver, nodata, compress)

            with rasterio.open(staged, 'w', **profile) as dst:
                for _, window in src.block_windows(1):
                    data = src.read(window=window)
                    suppress = mask.read(1, window=window) == 0
                    data[:, suppress] = nodata
                    masked_count += int(suppress.sum())
                    dst.write(data, window=window)

            total = src.width * src.height
    except Exception:
        try:
            remove_raster(staged)
        except OSError as e:
            logger.warning(f"Could not remove partial output {staged}: {e}")
        raise

    if overwrite:
        remove_raster(outfile)
    move_raster(staged, outfile)

    masked_fraction = masked_count / total if total else 0.0
    logger.debug(f"Masked {masked_fraction:.1%} of {Path(infile).name}")
    return MaskedProduct(path=str(outfile), masked_fraction=masked_fraction)
