# =============================================================================
# tests/test_mask_application.py: Writing masked products
#
# Expected invariants:
#   - masked pixels hold the no-data value in every band
#   - unmasked pixels are copied unchanged
#   - no staged (partial) file survives a failed or successful write
# =============================================================================

from pathlib import Path

import numpy as np
import pytest

from conftest import read_raster, reflectance
from sentinel2_masking.core import mask_application
from sentinel2_masking.core.errors import UnsupportedFormatError
from sentinel2_masking.core.mask_application import (
    apply_mask,
    check_output_format,
    default_nodata,
    driver_extension,
    is_sidecar,
    output_driver,
    output_filename,
    remove_raster,
    writable_formats,
)


@pytest.fixture
def checker_mask():
    mask = np.ones((4, 4), dtype='uint8')
    mask[::2, ::2] = 0
    return mask


def leftovers(directory):
    return [p.name for p in directory.iterdir() if '.part' in p.name]


def test_apply_mask_sets_nodata_in_all_bands(make_raster, tmp_path, checker_mask):
    bands = reflectance(4, bands=3)
    infile = make_raster('in.tif', bands, nodata=0)
    maskfile = make_raster('mask.tif', checker_mask)
    outdir = tmp_path / 'out'
    outdir.mkdir()

    product = apply_mask(infile, maskfile, outdir / 'out.tif')

    data, profile = read_raster(product.path)
    assert profile['count'] == 3
    assert profile['dtype'] == 'uint16'
    assert profile['nodata'] == 0
    suppressed = checker_mask == 0
    assert (data[:, suppressed] == 0).all()
    np.testing.assert_array_equal(data[:, ~suppressed], bands[:, ~suppressed])
    assert product.masked_fraction == pytest.approx(4 / 16)
    assert leftovers(outdir) == []


def test_apply_mask_without_declared_nodata(make_raster, tmp_path, checker_mask):
    infile = make_raster('in.tif', np.full((4, 4), 5.0, dtype='float32'))
    maskfile = make_raster('mask.tif', checker_mask)

    product = apply_mask(infile, maskfile, tmp_path / 'out.tif')

    data, profile = read_raster(product.path)
    assert np.isnan(profile['nodata'])
    assert np.isnan(data[0, 0, 0])
    assert data[0, 1, 1] == 5.0


@pytest.mark.parametrize('dtype, expected', [
    ('uint8', 0),
    ('uint16', 0),
    ('int16', -32768),
    ('int32', -2147483648),
])
def test_default_nodata_integers(dtype, expected):
    assert default_nodata(dtype) == expected


def test_default_nodata_float():
    assert np.isnan(default_nodata('float32'))


def test_driver_extension():
    assert driver_extension('GTiff') == 'tif'
    assert driver_extension('ENVI') == 'dat'


def test_check_output_format():
    assert check_output_format('GTiff') == 'GTiff'
    assert check_output_format('ENVI') == 'ENVI'


@pytest.mark.parametrize('driver', ['NotAFormat', 'HDF5', 'ESRI Shapefile'])
def test_check_output_format_rejects_non_writable_drivers(driver):
    assert driver not in writable_formats()
    with pytest.raises(UnsupportedFormatError):
        check_output_format(driver)


def test_output_driver(make_raster, tmp_path):
    infile = make_raster('in.tif', np.ones((2, 2), dtype='uint8'))

    assert output_driver(infile) == 'GTiff'
    assert output_driver(infile, 'ENVI') == 'ENVI'
    assert output_driver(infile, 'VRT') == 'GTiff'


def test_output_filename(tmp_path):
    out = output_filename('/data/S2A2A_20200101_022_32TNR_BOA_10.vrt', tmp_path, 'vrt', 'GTiff')
    assert out == tmp_path / 'S2A2A_20200101_022_32TNR_BOA_10.tif'

    out = output_filename('S2A2A_20200101_022_32TNR_BOA_10', tmp_path, '', 'ENVI')
    assert out == tmp_path / 'S2A2A_20200101_022_32TNR_BOA_10.dat'


def test_envi_output_moves_header(make_raster, tmp_path, checker_mask):
    infile = make_raster('in.tif', reflectance(4, bands=2), nodata=0)
    maskfile = make_raster('mask.tif', checker_mask)
    outdir = tmp_path / 'out'
    outdir.mkdir()

    product = apply_mask(infile, maskfile, outdir / 'out.dat', driver='ENVI')

    assert product.path == str(outdir / 'out.dat')
    assert (outdir / 'out.hdr').exists()
    assert leftovers(outdir) == []
    data, profile = read_raster(product.path)
    assert profile['driver'] == 'ENVI'
    assert (data[:, checker_mask == 0] == 0).all()


def test_existing_output_is_not_overwritten(make_raster, tmp_path, checker_mask):
    infile = make_raster('in.tif', reflectance(4), nodata=0)
    maskfile = make_raster('mask.tif', checker_mask)
    outfile = tmp_path / 'out.tif'
    outfile.write_bytes(b'previous')

    with pytest.raises(FileExistsError):
        apply_mask(infile, maskfile, outfile)
    assert outfile.read_bytes() == b'previous'

    apply_mask(infile, maskfile, outfile, overwrite=True)
    data, _ = read_raster(outfile)
    assert data.shape == (4, 4, 4)


def test_grid_mismatch_leaves_no_file(make_raster, tmp_path):
    infile = make_raster('in.tif', reflectance(4), nodata=0)
    maskfile = make_raster('mask.tif', np.ones((5, 5), dtype='uint8'))
    outdir = tmp_path / 'out'
    outdir.mkdir()

    with pytest.raises(ValueError):
        apply_mask(infile, maskfile, outdir / 'out.tif')

    assert list(outdir.iterdir()) == []


@pytest.mark.parametrize('name, expected', [
    ('S2A2A_20200101_022_32TNR_BOA_10.tif', False),
    ('S2A2A_20200101_022_32TNR_BOA_10.dat', False),
    ('S2A2A_20200101_022_32TNR_BOA_10.hdr', True),
    ('S2A2A_20200101_022_32TNR_BOA_10.dat.aux.xml', True),
    ('S2A2A_20200101_022_32TNR_BOA_10.tif.ovr', True),
])
def test_is_sidecar(name, expected):
    assert is_sidecar(name) is expected


def test_remove_raster_handles_dataset_directories(tmp_path):
    dataset = tmp_path / '.out.1234abcd.part.shp'
    dataset.mkdir()
    (dataset / 'layer.dbf').write_bytes(b'')
    Path(f"{dataset}.aux.xml").write_text('<PAMDataset/>')

    remove_raster(dataset)

    assert list(tmp_path.iterdir()) == []


def test_failed_cleanup_keeps_original_error(make_raster, tmp_path, monkeypatch):
    def failing_remove(path):
        raise IsADirectoryError(21, 'Is a directory', str(path))

    monkeypatch.setattr(mask_application, 'remove_raster', failing_remove)
    infile = make_raster('in.tif', reflectance(4), nodata=0)
    maskfile = make_raster('mask.tif', np.ones((5, 5), dtype='uint8'))

    with pytest.raises(ValueError, match='not on the grid'):
        apply_mask(infile, maskfile, tmp_path / 'out.tif')
