"""HRMS core: tenant routing and salary document composition."""

__version__ = "1.0.0"
