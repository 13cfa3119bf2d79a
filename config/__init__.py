"""
Antichess AI Configuration Package.

This package contains configuration utilities and parameters for the antichess AI system.
"""

from .config import CONFIG, load_config, validate_config

__all__ = ['CONFIG', 'load_config', 'validate_config']
