# =============================================================================
# tests/conftest.py: Synthetic Sentinel-2 rasters for the masking tests
#
# Products and SCL rasters are small GeoTIFFs written with rasterio in the
# test's tmp_path, on a UTM grid anchored at (600000, 5000000).
# =============================================================================

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

CRS = 'EPSG:32632'
ORIGIN = (600000.0, 5000000.0)


def write_raster(path, data, res=10, nodata=None, dtype=None, driver='GTiff', origin=ORIGIN):
    data = np.asarray(data)
    if data.ndim == 2:
        data = data[np.newaxis]
    dtype = dtype or data.dtype
    profile = {
        'driver': driver,
        'width': data.shape[2],
        'height': data.shape[1],
        'count': data.shape[0],
        'dtype': dtype,
        'crs': CRS,
        'transform': from_origin(origin[0], origin[1], res, res),
        'nodata': nodata,
    }
    with rasterio.open(path, 'w', **profile) as dst:
        dst.write(data.astype(dtype))
    return str(path)


def read_raster(path):
    with rasterio.open(path) as src:
        return src.read(), src.profile


def scl_codes(size):
    """SCL raster cycling through all codes 0-11."""
    return (np.arange(size * size) % 12).reshape(size, size).astype('uint8')


def reflectance(size, bands=4):
    return (np.arange(bands * size * size).reshape(bands, size, size) + 1000).astype('uint16')


@pytest.fixture
def make_raster(tmp_path):
    def _make(name, data, **kwargs):
        return write_raster(tmp_path / name, data, **kwargs)
    return _make


@pytest.fixture
def s2_products(tmp_path):
    """
    A 10 m and a 20 m BOA product of the same tile/date/orbit with their SCL rasters.

    The 10 m grid is 12x12 pixels, the 20 m grid 6x6, covering the same extent.
    """
    indir = tmp_path / 'translated'
    indir.mkdir()
    files = {
        'boa_10': write_raster(indir / 'S2A2A_20200101_022_32TNR_BOA_10.tif', reflectance(12), res=10, nodata=0),
        'boa_20': write_raster(indir / 'S2A2A_20200101_022_32TNR_BOA_20.tif', reflectance(6), res=20, nodata=0),
        'scl_10': write_raster(indir / 'S2A2A_20200101_022_32TNR_SCL_10.tif', scl_codes(12), res=10),
        'scl_20': write_raster(indir / 'S2A2A_20200101_022_32TNR_SCL_20.tif', scl_codes(6), res=20),
    }
    return files
