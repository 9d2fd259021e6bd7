"""
Raster utilities used by mask smoothing.

Smoothing needs two operations on single-band rasters:

- ``set_nodata``: copy a raster tagging a value as no-data (or removing the
  tag), as done by ``gdal_translate -a_nodata``;
- ``fill_nodata``: in-paint no-data pixels up to a maximum distance in
  pixels, as done by ``gdal_fillnodata.py -md``.

``RasterioTools`` performs both in process with rasterio. ``GdalCliTools``
runs the GDAL command line utilities through argument vectors and raises
``ExternalToolError`` when a command fails or produces no output.

Author: Diego Bengochea
"""

import shutil
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import numpy as np
import rasterio
from rasterio.fill import fillnodata

from shared_utils import get_logger

from .errors import ExternalToolError


PathLike = Union[str, Path]

TOOL_CREATION_OPTIONS = {'compress': 'lzw'}


class RasterTools:
    """Interface of the fill/translate operations used by the smoother."""

    def set_nodata(self, src: PathLike, dst: PathLike, nodata: Optional[float]) -> str:
        raise NotImplementedError

    def fill_nodata(self, src: PathLike, dst: PathLike, max_distance: float,
                    smoothing_iterations: int = 0) -> str:
        raise NotImplementedError


class RasterioTools(RasterTools):
    """In-process implementation based on rasterio."""

    def set_nodata(self, src: PathLike, dst: PathLike, nodata: Optional[float]) -> str:
        with rasterio.open(src) as ds:
            profile = ds.profile.copy()
            data = ds.read()
        profile.update(driver='GTiff', nodata=nodata, **TOOL_CREATION_OPTIONS)
        with rasterio.open(dst, 'w', **profile) as out:
            out.write(data)
        return str(dst)

    def fill_nodata(self, src: PathLike, dst: PathLike, max_distance: float,
                    smoothing_iterations: int = 0) -> str:
        with rasterio.open(src) as ds:
            profile = ds.profile.copy()
            data = ds.read(1)
            nodata = ds.nodata

        if nodata is not None and max_distance > 0:
            valid = (data != nodata).astype('uint8')
            data = fillnodata(
                data,
                mask=valid,
                max_search_distance=float(max_distance),
                smoothing_iterations=smoothing_iterations
            )

        profile.update(driver='GTiff', **TOOL_CREATION_OPTIONS)
        with rasterio.open(dst, 'w', **profile) as out:
            out.write(np.asarray(data, dtype=profile['dtype']), 1)
        return str(dst)


def run_tool(command: Sequence[str], output_path: PathLike) -> str:
    """
    Run an external raster utility and check that it produced its output.

    Args:
        command: Argument vector (no shell involved)
        output_path: File the command is expected to create

    Returns:
        str: ``output_path``

    Raises:
        ExternalToolError: On a missing binary, a non-zero exit or a missing output
    """
    logger = get_logger('masking')
    command = [str(c) for c in command]
    logger.debug(f"Running: {' '.join(command)}")

    try:
        proc = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, universal_newlines=True)
    except OSError as e:
        raise ExternalToolError(command, None, str(e))

    if proc.returncode != 0:
        logger.error(f"Command failed ({proc.returncode}): {' '.join(command)}")
        raise ExternalToolError(command, proc.returncode, proc.stderr)

    if not Path(output_path).exists():
        raise ExternalToolError(command, proc.returncode, f"output {output_path} was not created")

    return str(output_path)


class GdalCliTools(RasterTools):
    """
    Implementation based on the GDAL command line utilities.

    Args:
        gdal_translate: Path of the gdal_translate binary
        gdal_fillnodata: Path of the gdal_fillnodata script
    """

    def __init__(self, gdal_translate: str = 'gdal_translate', gdal_fillnodata: str = 'gdal_fillnodata.py'):
        self.gdal_translate = gdal_translate
        self.gdal_fillnodata = gdal_fillnodata

    @classmethod
    def from_binpaths(cls, binpaths: Mapping[str, Optional[str]]) -> 'GdalCliTools':
        """Build from a mapping with optional 'gdal_translate' and 'gdal_fillnodata' entries."""
        return cls(
            gdal_translate=binpaths.get('gdal_translate') or 'gdal_translate',
            gdal_fillnodata=binpaths.get('gdal_fillnodata') or 'gdal_fillnodata.py'
        )

    def set_nodata(self, src: PathLike, dst: PathLike, nodata: Optional[float]) -> str:
        nodata_arg = 'none' if nodata is None else _format_number(nodata)
        command = [
            self.gdal_translate, '-of', 'GTiff', '-co', 'COMPRESS=LZW',
            '-a_nodata', nodata_arg, str(src), str(dst)
        ]
        return run_tool(command, dst)

    def fill_nodata(self, src: PathLike, dst: PathLike, max_distance: float,
                    smoothing_iterations: int = 0) -> str:
        if max_distance <= 0:
            # gdal_fillnodata rejects non-positive distances; nothing would be filled
            shutil.copyfile(src, dst)
            return str(dst)
        command = [
            self.gdal_fillnodata, '-md', _format_number(max_distance),
            '-si', str(smoothing_iterations), '-of', 'GTiff', '-co', 'COMPRESS=LZW',
            str(src), str(dst)
        ]
        return run_tool(command, dst)


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def get_raster_tools(binpaths: Optional[Mapping[str, Optional[str]]] = None) -> RasterTools:
    """
    Select the tool backend.

    Args:
        binpaths: Paths of the GDAL utilities; when empty or None the
            in-process rasterio backend is used

    Returns:
        RasterTools: Backend instance
    """
    if binpaths and any(binpaths.values()):
        return GdalCliTools.from_binpaths(binpaths)
    return RasterioTools()
