"""Ingestion layer.

This package contains adapters that turn rows fetched by the periodic pull
or delivered by the push stream into typed models.
"""

__all__: list[str] = []
