"""Shared infrastructure: configuration, logging, metrics, errors and counters."""
