"""
Configuration management for the antichess AI system.

This module handles loading, validation, and access to configuration parameters
used throughout the system.
"""

import os
import yaml
import logging
from typing import Dict, Any, Optional

# Configure logging
logger = logging.getLogger(__name__)

# Define base paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_DIR = os.path.join(BASE_DIR, 'config')
DATA_DIR = os.path.join(BASE_DIR, 'data')
LOG_DIR = os.path.join(BASE_DIR, 'logs')


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the config file. If None, uses default hyperparameters.yaml.

    Returns:
        Dict containing configuration parameters.

    Raises:
        FileNotFoundError: If the configuration file doesn't exist.
        yaml.YAMLError: If the configuration file is not valid YAML.
    """
    if config_path is None:
        config_path = os.path.join(CONFIG_DIR, 'hyperparameters.yaml')

    logger.info(f"Loading configuration from {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_params = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {config_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        raise

    # Add directory paths to config
    config_params.update({
        'base_dir': BASE_DIR,
        'config_dir': CONFIG_DIR,
        'data_dir': DATA_DIR,
        'log_dir': LOG_DIR
    })

    return config_params


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration parameters.

    Args:
        config: Configuration dictionary to validate.

    Returns:
        True if configuration is valid, False otherwise.
    """
    required_params = {
        'mcts': ['exploration_constant', 'threat_constant', 'max_playout_depth', 'time_limit'],
        'book': ['enabled', 'path'],
        'engine': ['searcher']
    }

    for section, params in required_params.items():
        section_config = config.get(section)
        if not isinstance(section_config, dict):
            logger.error(f"Missing required configuration section: {section}")
            return False
        for param in params:
            if param not in section_config:
                logger.error(f"Missing required configuration parameter: {section}.{param}")
                return False

    time_limit = config['mcts']['time_limit']
    if time_limit is not None and time_limit <= 0:
        logger.error(f"mcts.time_limit must be positive, got {time_limit}")
        return False

    if time_limit is None and config['mcts'].get('iteration_cap') is None:
        logger.error("mcts.time_limit and mcts.iteration_cap cannot both be null")
        return False

    return True


# Load the default configuration
CONFIG = load_config()

# Validate the configuration
if not validate_config(CONFIG):
    logger.warning("Configuration validation failed, components will fall back to their defaults")
