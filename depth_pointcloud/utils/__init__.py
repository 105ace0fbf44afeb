"""
Utility Functions and Helpers

Common utilities for the point cloud pipeline.
"""

from .config_manager import ConfigManager
from .metrics import MetricsCalculator

__all__ = ['ConfigManager', 'MetricsCalculator']
