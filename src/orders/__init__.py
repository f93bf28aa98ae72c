"""Orders — ingestion снапшотов store и нормализация идентичности покупателей."""

from .importer import OrderImporter, Snapshot, unify_buyer_identities

__all__ = [
    "OrderImporter",
    "Snapshot",
    "unify_buyer_identities",
]
