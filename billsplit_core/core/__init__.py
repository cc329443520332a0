"""Configuration, logging, errors, clock and dependency injection."""
