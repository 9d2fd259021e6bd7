"""
Configuration utilities for the Sentinel-2 preprocessing tools.

This module provides standardized configuration loading and validation
across all pipeline components.

Author: Diego Bengochea
"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging


CONFIG_ENV_VAR = 'S2_PREPROCESSING_CONFIG'


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    component_name: Optional[str] = None,
    default_config_name: str = "config.yaml"
) -> Dict[str, Any]:
    """
    Load configuration from YAML file with standardized search patterns.

    Search order:
    1. Explicit config_path if provided
    2. Component package directory + default_config_name
    3. Current directory + default_config_name
    4. Environment variable S2_PREPROCESSING_CONFIG

    Args:
        config_path: Explicit path to configuration file
        component_name: Name of component (for automatic config discovery)
        default_config_name: Default config filename to search for

    Returns:
        Dict[str, Any]: Configuration dictionary

    Raises:
        FileNotFoundError: If no configuration file is found
        yaml.YAMLError: If configuration file is invalid YAML

    Examples:
        >>> config = load_config()  # Search for config.yaml
        >>> config = load_config("custom_config.yaml")
        >>> config = load_config(component_name="sentinel2_masking")
    """
    logger = logging.getLogger(__name__)

    search_paths = []

    # 1. Explicit path
    if config_path:
        search_paths.append(Path(config_path))

    # 2. Component directory, relative to the working directory and to the install location
    if component_name:
        search_paths.append(Path(component_name) / default_config_name)
        search_paths.append(Path(__file__).resolve().parent.parent / component_name / default_config_name)

    # 3. Current directory
    search_paths.append(Path(default_config_name))

    # 4. Environment variable
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        search_paths.append(Path(env_config))

    config_file = None
    for path in search_paths:
        if path.exists():
            config_file = path
            logger.debug(f"Found configuration file: {config_file}")
            break

    if not config_file:
        searched_paths = [str(p) for p in search_paths]
        raise FileNotFoundError(
            f"Configuration file not found. Searched paths: {searched_paths}"
        )

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML in {config_file}: {e}")

    config['_meta'] = {
        'config_file': str(config_file.absolute()),
        'component_name': component_name,
        'loaded_at': str(Path.cwd())
    }

    logger.info(f"Loaded configuration from: {config_file}")
    return config


def validate_config(config: Dict[str, Any], required_sections: list = None) -> bool:
    """
    Validate configuration dictionary structure.

    Args:
        config: Configuration dictionary to validate
        required_sections: List of required top-level sections

    Returns:
        bool: True if configuration is valid

    Raises:
        ValueError: If configuration is invalid

    Examples:
        >>> validate_config(config, ['paths', 'masking', 'smoothing'])
    """
    logger = logging.getLogger(__name__)

    if not isinstance(config, dict):
        raise ValueError("Configuration must be a dictionary")

    if required_sections:
        missing_sections = [section for section in required_sections if section not in config]

        if missing_sections:
            raise ValueError(f"Missing required configuration sections: {missing_sections}")

    if isinstance(config.get('paths'), dict):
        _validate_paths_in_section(config['paths'], 'paths', logger)

    logger.debug("Configuration validation passed")
    return True


def _validate_paths_in_section(section: dict, section_name: str, logger: logging.Logger) -> None:
    """
    Warn about configured input directories that do not exist.

    Args:
        section: Configuration section to validate
        section_name: Name of the section for error reporting
        logger: Logger instance
    """
    for key, value in section.items():
        if isinstance(value, str) and ('input' in key.lower() or 'classification' in key.lower()):
            if not Path(value).exists():
                logger.warning(f"Input path does not exist: {section_name}.{key} = {value}")


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to the value (e.g., 'masking.mask_type')
        default: Default value if key is not found or is null

    Returns:
        Any: Configuration value or default

    Examples:
        >>> mask_type = get_config_value(config, 'masking.mask_type', 'cloud_medium_proba')
        >>> radius = get_config_value(config, 'smoothing.radius', 0)
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
    except (KeyError, TypeError):
        return default

    return default if value is None else value
