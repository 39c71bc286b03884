"""Core infrastructure: settings, logging and errors."""
