"""Daily inventory availability snapshots."""
