"""Archgate - architecture rule validation for import graphs."""

__version__ = "0.4.0"
