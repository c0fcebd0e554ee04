"""
Module: utils
Description: Package initialization for utility functions.

This package contains shared helpers used throughout the delivery engine:
- logger: Structured logging configuration and helpers
- timestamps: UTC timestamp formatting
"""

__all__ = []
