"""Admission checks for management.cattle.io resources."""

__version__ = "0.1.0"