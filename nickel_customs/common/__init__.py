"""Shared helpers used across nickel-customs subpackages."""
