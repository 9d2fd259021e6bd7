# =============================================================================
# tests/test_config_utils.py: Configuration loading and lookup
# =============================================================================

import pytest
import yaml

from shared_utils import find_files, get_config_value, load_config, validate_config
from shared_utils.config_utils import CONFIG_ENV_VAR


def test_load_explicit_config(tmp_path):
    path = tmp_path / 'custom.yaml'
    path.write_text(yaml.safe_dump({'masking': {'mask_type': 'nodata'}}))

    config = load_config(path)

    assert config['masking']['mask_type'] == 'nodata'
    assert config['_meta']['config_file'] == str(path.absolute())


def test_load_packaged_component_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    config = load_config(component_name='sentinel2_masking')

    assert config['masking']['mask_type'] == 'cloud_medium_proba'
    assert config['masking']['resampling'] == 'nearest'
    assert config['smoothing'] == {'radius': 0, 'buffer': 0}


def test_load_config_from_environment(tmp_path, monkeypatch):
    path = tmp_path / 'env.yaml'
    path.write_text(yaml.safe_dump({'paths': {'output_dir': 'out'}}))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    config = load_config(component_name='no_such_component')

    assert config['paths']['output_dir'] == 'out'


def test_load_config_not_found(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    with pytest.raises(FileNotFoundError):
        load_config(component_name='no_such_component')


def test_validate_config():
    assert validate_config({'paths': {}, 'masking': {}}, ['paths', 'masking'])
    with pytest.raises(ValueError):
        validate_config({'paths': {}}, ['paths', 'masking'])
    with pytest.raises(ValueError):
        validate_config(['paths'])


def test_get_config_value():
    config = {'masking': {'mask_type': 'nodata', 'format': None}, 'smoothing': 5}

    assert get_config_value(config, 'masking.mask_type') == 'nodata'
    assert get_config_value(config, 'masking.format', 'GTiff') == 'GTiff'
    assert get_config_value(config, 'masking.compress', 'DEFLATE') == 'DEFLATE'
    assert get_config_value(config, 'smoothing.radius', 0) == 0


def test_find_files_is_sorted_and_skips_directories(tmp_path):
    (tmp_path / 'S2B_b.tif').write_bytes(b'')
    (tmp_path / 'S2A_a.tif').write_bytes(b'')
    (tmp_path / 'S2_dir').mkdir()
    (tmp_path / 'S2_dir' / 'S2C_c.tif').write_bytes(b'')

    assert [f.name for f in find_files(tmp_path, 'S2*_*', recursive=False)] == ['S2A_a.tif', 'S2B_b.tif']
    assert [f.name for f in find_files(tmp_path, 'S2*_*')] == ['S2A_a.tif', 'S2B_b.tif', 'S2C_c.tif']
    assert find_files(tmp_path / 'missing') == []
