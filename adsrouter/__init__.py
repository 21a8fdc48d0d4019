"""Find a PLC by TCP port fingerprint and accept ADS client connections for it."""

__version__ = "0.1.0"