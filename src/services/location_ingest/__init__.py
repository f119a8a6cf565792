# src/services/location_ingest/__init__.py
"""
Приём геолокации водителей.
"""

from src.services.location_ingest.service import LocationIngestService

__all__ = ["LocationIngestService"]
