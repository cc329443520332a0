"""Response caching and LGPD data-retention core for the bill-splitting assistant."""

__version__ = "0.3.0"
