"""Multi-provider payment gateway layer."""

__version__ = "0.1.0"
