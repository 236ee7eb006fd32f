"""Ingestion of reference data, catalog variants and inventory levels."""
