"""Crewline authorization engine and admin API."""

__version__ = "0.1.0"
