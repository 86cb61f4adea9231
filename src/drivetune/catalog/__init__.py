"""Catalog construction and snapshots."""

from drivetune.catalog.builder import (
    Catalog,
    CatalogBuilder,
    CatalogState,
    RefreshReport,
    SkippedItem,
)

__all__ = ["Catalog", "CatalogBuilder", "CatalogState", "RefreshReport", "SkippedItem"]
