"""Quarry command-line interface."""
