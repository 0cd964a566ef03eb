"""Guardian intake scheduling: availability matching and preference interpretation."""

__version__ = "0.1.0"
