"""Sentinel scene query and radar classification service.

Turns a user polygon and a target date into a correctly sized render
request, resolves a usable acquisition date through a tiered catalog
fallback, and converts raw Sentinel-1 samples into land-cover classes or
backscatter statistics.
"""

__version__ = "0.1.0"
