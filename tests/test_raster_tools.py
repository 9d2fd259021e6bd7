# =============================================================================
# tests/test_raster_tools.py: Raster utility backends used by the smoother
# =============================================================================

import sys

import numpy as np
import pytest

from conftest import read_raster
from sentinel2_masking.core import raster_tools
from sentinel2_masking.core.errors import ExternalToolError
from sentinel2_masking.core.raster_tools import (
    GdalCliTools,
    RasterioTools,
    get_raster_tools,
    run_tool,
)


def test_run_tool_reports_exit_status(tmp_path):
    command = [sys.executable, '-c', 'import sys; sys.stderr.write("boom"); sys.exit(3)']

    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(command, tmp_path / 'out.tif')

    assert excinfo.value.returncode == 3
    assert excinfo.value.command == command
    assert 'boom' in excinfo.value.stderr


def test_run_tool_missing_binary(tmp_path):
    with pytest.raises(ExternalToolError) as excinfo:
        run_tool([str(tmp_path / 'no_such_tool')], tmp_path / 'out.tif')

    assert excinfo.value.returncode is None


def test_run_tool_missing_output(tmp_path):
    with pytest.raises(ExternalToolError) as excinfo:
        run_tool([sys.executable, '-c', 'pass'], tmp_path / 'out.tif')

    assert excinfo.value.returncode == 0
    assert 'was not created' in str(excinfo.value)


def test_run_tool_success(tmp_path):
    out = tmp_path / 'out.tif'
    command = [sys.executable, '-c', f'open({str(out)!r}, "w").close()']

    assert run_tool(command, out) == str(out)


@pytest.fixture
def recorded_commands(monkeypatch):
    commands = []

    def fake_run_tool(command, output_path):
        commands.append(command)
        return str(output_path)

    monkeypatch.setattr(raster_tools, 'run_tool', fake_run_tool)
    return commands


def test_gdal_cli_set_nodata_commands(recorded_commands):
    tools = GdalCliTools('/opt/gdal/bin/gdal_translate', 'gdal_fillnodata.py')

    tools.set_nodata('in.tif', 'out.tif', 1)
    tools.set_nodata('in.tif', 'out.tif', None)

    assert recorded_commands == [
        ['/opt/gdal/bin/gdal_translate', '-of', 'GTiff', '-co', 'COMPRESS=LZW',
         '-a_nodata', '1', 'in.tif', 'out.tif'],
        ['/opt/gdal/bin/gdal_translate', '-of', 'GTiff', '-co', 'COMPRESS=LZW',
         '-a_nodata', 'none', 'in.tif', 'out.tif'],
    ]


def test_gdal_cli_fill_nodata_command(recorded_commands):
    tools = GdalCliTools()

    tools.fill_nodata('in.tif', 'out.tif', 7.5)
    tools.fill_nodata('in.tif', 'out.tif', 20.0)

    assert recorded_commands == [
        ['gdal_fillnodata.py', '-md', '7.5', '-si', '0', '-of', 'GTiff',
         '-co', 'COMPRESS=LZW', 'in.tif', 'out.tif'],
        ['gdal_fillnodata.py', '-md', '20', '-si', '0', '-of', 'GTiff',
         '-co', 'COMPRESS=LZW', 'in.tif', 'out.tif'],
    ]


def test_gdal_cli_zero_distance_copies(recorded_commands, tmp_path):
    src = tmp_path / 'in.tif'
    src.write_bytes(b'raster')

    GdalCliTools().fill_nodata(src, tmp_path / 'out.tif', 0)

    assert recorded_commands == []
    assert (tmp_path / 'out.tif').read_bytes() == b'raster'


def test_get_raster_tools():
    assert isinstance(get_raster_tools(None), RasterioTools)
    assert isinstance(get_raster_tools({'gdal_translate': None, 'gdal_fillnodata': None}), RasterioTools)

    tools = get_raster_tools({'gdal_translate': '/usr/local/bin/gdal_translate'})
    assert isinstance(tools, GdalCliTools)
    assert tools.gdal_translate == '/usr/local/bin/gdal_translate'
    assert tools.gdal_fillnodata == 'gdal_fillnodata.py'


def test_rasterio_set_nodata(make_raster, tmp_path):
    src = make_raster('in.tif', np.array([[0, 1], [1, 1]], dtype='uint8'))
    tools = RasterioTools()

    tagged = tools.set_nodata(src, tmp_path / 'tagged.tif', 1)
    untagged = tools.set_nodata(tagged, tmp_path / 'untagged.tif', None)

    data, profile = read_raster(tagged)
    assert profile['nodata'] == 1
    np.testing.assert_array_equal(data[0], [[0, 1], [1, 1]])
    assert read_raster(untagged)[1]['nodata'] is None


def test_rasterio_fill_nodata_respects_distance(make_raster, tmp_path):
    data = np.ones((1, 10), dtype='uint8')
    data[0, 0] = 0
    src = make_raster('in.tif', data, nodata=1)

    out = RasterioTools().fill_nodata(src, tmp_path / 'filled.tif', 3)

    filled, _ = read_raster(out)
    assert (filled[0, 0, :3] == 0).all()
    assert (filled[0, 0, 5:] == 1).all()
