"""Commute monitoring: itinerary synthesis and delay alerts for recurring trips."""

__version__ = "0.1.0"
