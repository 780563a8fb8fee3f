"""Installation pipeline (strategies, stages, progress output)."""
