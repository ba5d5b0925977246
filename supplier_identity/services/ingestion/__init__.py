"""Catalog ingestion service."""
from supplier_identity.services.ingestion.service import CatalogIngestionService

__all__ = ["CatalogIngestionService"]
