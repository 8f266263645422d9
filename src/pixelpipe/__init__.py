"""pixelpipe - direct image uploads and event-driven image derivatives."""

__version__ = "0.1.0"
