"""Normalize retry counts of Qlik Sense reload tasks."""

__version__ = "0.1.0"
