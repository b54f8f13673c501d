"""Classification and aggregation engine for recorded desktop activity."""

__version__ = "0.1.0"
