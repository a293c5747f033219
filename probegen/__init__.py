"""Probe manifest compiler and incremental native build driver."""

__version__ = "0.1.0"
