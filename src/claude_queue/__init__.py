"""Automated GitHub issue solver and creator driven by a CLI coding agent."""

__version__ = "0.4.0"
