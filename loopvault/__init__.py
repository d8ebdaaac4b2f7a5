"""Leveraged sBTC loop vault — loop simulation, health evaluation and execution."""

__version__ = "0.3.0"
