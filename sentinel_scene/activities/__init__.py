"""Pipeline activities.

Each activity performs a single unit of work for a scene request:
- analyze_geometry: Bounding box, area, aspect ratio, output pixel size
- resolve_scene: Catalog search and the date fallback cascade
- classify_mode: Sentinel-1 polarisation / instrument mode lookup
- aggregate_raster: Raw raster decoding, masking, dB statistics
"""
