"""Exceptions raised by the MSX2 screen converter."""


class ConversionError(Exception):
    """Custom exception for conversion errors."""
