"""Compile and flash Arduino sketches through arduino-cli."""

__version__ = "0.1.0"
