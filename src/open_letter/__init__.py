"""NationStates open letter service."""

__version__ = "1.0.0"
