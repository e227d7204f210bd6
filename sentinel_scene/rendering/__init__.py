"""Render request construction.

- classification: Seasonal radar thresholds, ordered class rules, evalscript
- variants: Registry of render variants (optical and radar)
- request_builder: Single Process API payload builder for every variant
"""
