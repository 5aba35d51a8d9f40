"""Batch processing pipeline: retries, per-pair locks, workers."""
