"""Utility functions for the CLI and catalog loading."""

from .color_formatter import setup_logging
from .yaml_loader import load_restaurants_from_yaml

__all__ = ["load_restaurants_from_yaml", "setup_logging"]
