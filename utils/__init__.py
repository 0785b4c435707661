"""Shared helpers: configuration-aware logging, time zones, validation, errors."""
