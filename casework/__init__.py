"""Event-sourced case handling and architecture boundary checks."""

__version__ = "0.1.0"