"""Request orchestration.

- scene_pipeline: Geometry, scene resolution, render or statistics, and
  the concurrent comparison fan-out.
"""
