"""Version information for interlock."""

__version__ = "0.1.0"
