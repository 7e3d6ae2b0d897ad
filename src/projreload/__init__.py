"""Projreload - in-place reload of project definition documents."""

__version__ = "0.1.0"
