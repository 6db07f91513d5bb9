"""Core infrastructure: logging, configuration, errors and resource paths."""
