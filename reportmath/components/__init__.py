"""
System components for reportmath.

This module provides configuration management shared by the command line
entry point and the report runners.
"""

from reportmath.components.config import Config, ConfigManager
