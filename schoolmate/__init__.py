"""Schoolmate backend: schema-per-tenant school management core."""

__version__ = "0.1.0"
