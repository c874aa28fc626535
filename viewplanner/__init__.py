"""Modular trajectory evaluation building blocks for informative 3D view planning."""

__version__ = "0.1.0"