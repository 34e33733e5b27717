"""Arena Live - live match control backend for esports tournaments."""

__version__ = "1.0.0"
