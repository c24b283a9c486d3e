"""
Configuration Management

This module handles the JSON configuration for the classifier and its
preprocessing steps. It provides functions to load/save configuration,
validate it, and read or update nested values with dot notation.
"""

import copy
import json
import os
from typing import Any, Dict

from knn_classifier.constants import DISTANCE_TIE_BREAKS, VOTE_TIE_BREAKS
from knn_classifier.distance import METRICS
from knn_classifier.errors import InvalidConfiguration


DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
    "classifier": {
        "n_neighbors": 5,
        "metric": "euclidean",
        "distance_tie_break": "insertion",
        "vote_tie_break": "nearest"
    },
    "preprocessing": {
        "standardize": True,
        "oversample": False,
        "over_ratio": 1.0,
        "random_seed": 42
    }
}

_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def default_config() -> Dict:
    """Return a fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(config_path: str = "./config.json") -> Dict:
    """
    Load configuration from a JSON file.

    Sections missing from the file are filled in from DEFAULT_CONFIG.

    Args:
        config_path (str): Path to the configuration file

    Returns:
        dict: Validated configuration dictionary

    Raises:
        FileNotFoundError: If config file does not exist
        json.JSONDecodeError: If config file is not valid JSON
        InvalidConfiguration: If a configuration field is invalid
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        loaded = json.load(f)

    if not isinstance(loaded, dict):
        raise InvalidConfiguration("Configuration root must be a JSON object")

    config = default_config()
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    _validate_config(config)

    return config


def save_config(config: Dict, config_path: str = "./config.json") -> None:
    """
    Save configuration to a JSON file.

    Args:
        config (dict): Configuration dictionary to save
        config_path (str): Path to the configuration file

    Raises:
        IOError: If the file cannot be written
        InvalidConfiguration: If a configuration field is invalid
    """
    _validate_config(config)

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def _validate_config(config: Dict) -> None:
    """
    Validate configuration field types and values.

    Args:
        config (dict): Configuration dictionary to validate

    Raises:
        InvalidConfiguration: If a field is invalid
    """
    log_level = config.get('log_level', 'INFO')
    if not isinstance(log_level, str) or log_level.upper() not in _LOG_LEVELS:
        raise InvalidConfiguration(f"'log_level' must be one of {', '.join(_LOG_LEVELS)}")

    if 'classifier' in config:
        classifier = config['classifier']

        if not isinstance(classifier, dict):
            raise InvalidConfiguration("'classifier' configuration must be a dictionary")

        n_neighbors = classifier.get('n_neighbors', 5)
        if isinstance(n_neighbors, bool) or not isinstance(n_neighbors, int) or n_neighbors < 1:
            raise InvalidConfiguration("Classifier parameter 'n_neighbors' must be a positive integer")

        choices = {
            'metric': tuple(METRICS),
            'distance_tie_break': DISTANCE_TIE_BREAKS,
            'vote_tie_break': VOTE_TIE_BREAKS
        }

        for field, allowed in choices.items():
            if field in classifier and classifier[field] not in allowed:
                raise InvalidConfiguration(
                    f"Classifier parameter '{field}' must be one of: {', '.join(allowed)}"
                )

    if 'preprocessing' in config:
        preprocessing = config['preprocessing']

        if not isinstance(preprocessing, dict):
            raise InvalidConfiguration("'preprocessing' configuration must be a dictionary")

        for field in ('standardize', 'oversample'):
            if field in preprocessing and not isinstance(preprocessing[field], bool):
                raise InvalidConfiguration(f"Preprocessing parameter '{field}' must be a boolean")

        if 'over_ratio' in preprocessing:
            over_ratio = preprocessing['over_ratio']
            if isinstance(over_ratio, bool) or not isinstance(over_ratio, (int, float)) or over_ratio <= 0:
                raise InvalidConfiguration("Preprocessing parameter 'over_ratio' must be a positive number")

        seed = preprocessing.get('random_seed')
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
            raise InvalidConfiguration("Preprocessing parameter 'random_seed' must be a non-negative integer or null")


def get_config_value(config: Dict, key: str, default: Any = None) -> Any:
    """
    Get a configuration value with optional default.

    Args:
        config (dict): Configuration dictionary
        key (str): Configuration key (supports nested keys with dot notation)
        default: Default value if key is not found

    Returns:
        Configuration value or default

    Example:
        get_config_value(config, 'classifier.n_neighbors', 5)
    """
    keys = key.split('.')
    value = config

    for k in keys:
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default

    return value


def update_config_value(config: Dict, key: str, value: Any) -> Dict:
    """
    Update a configuration value (supports nested keys).

    Example:
        update_config_value(config, 'classifier.vote_tie_break', 'lexical')
    """
    keys = key.split('.')
    current = config

    for k in keys[:-1]:
        if k not in current:
            current[k] = {}
        current = current[k]

    current[keys[-1]] = value
    return config
