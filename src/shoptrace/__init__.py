"""Span-tree instrumentation and simulated backend for storefront workflows."""

__version__ = "0.1.0"
