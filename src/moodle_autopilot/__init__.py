"""Declarative Moodle automation workflows."""

__version__ = "0.1.0"
