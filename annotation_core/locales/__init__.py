"""Locale message catalogs for annotation_core."""
