"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Endpoints, sizing bounds, curated fallback dates
- exceptions: Exception taxonomy
"""
