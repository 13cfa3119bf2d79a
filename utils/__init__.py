"""
Utility Package.

This package contains utility functions and helpers used throughout the antichess AI system.
"""

from .logger import setup_logger, log_config, log_system_info, log_exception, LoggerAdapter

__all__ = ['setup_logger', 'log_config', 'log_system_info', 'log_exception', 'LoggerAdapter']
