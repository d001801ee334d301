"""
Store gateway - the only module that touches Firestore collections directly.

Layout:
- devices/{device_id}  → device moderation record
- reports/{report_id}  → emergency report (ID generated by Firestore)

Multi-document changes go through commit_updates(), which issues ONE
write batch so a cascade is applied entirely or not at all.
"""

from typing import Callable, Dict, List, Optional, Tuple
import logging

from app.config.firebase import get_db
from app.utils.firestore_helpers import snapshot_to_dict, where_filter

logger = logging.getLogger(__name__)

DEVICES = "devices"
REPORTS = "reports"

# Firestore rejects write batches with more than 500 operations
MAX_BATCH_WRITES = 500

DocumentPath = Tuple[str, str]


class BatchTooLarge(ValueError):
    pass


class ReportStore:
    """
    Thin wrapper over the Firestore client for the devices and reports collections.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        # Resolved on first use so views can exist before Firestore is reachable
        if self._db is None:
            self._db = get_db()
        return self._db

    # Reads

    def get_device(self, device_id: str) -> Optional[Dict]:
        doc = self.db.collection(DEVICES).document(device_id).get()
        if not doc.exists:
            return None
        return snapshot_to_dict(doc)

    def list_devices(self) -> List[Dict]:
        return [snapshot_to_dict(doc) for doc in self.db.collection(DEVICES).stream()]

    def get_report(self, report_id: str) -> Optional[Dict]:
        doc = self.db.collection(REPORTS).document(report_id).get()
        if not doc.exists:
            return None
        return snapshot_to_dict(doc)

    def list_reports(self) -> List[Dict]:
        return [snapshot_to_dict(doc) for doc in self.db.collection(REPORTS).stream()]

    def list_device_reports(self, device_id: str) -> List[Dict]:
        query = where_filter(self.db.collection(REPORTS), "device_id", "==", device_id)
        return [snapshot_to_dict(doc) for doc in query.stream()]

    # Writes

    def add_report(self, data: Dict) -> str:
        doc_ref = self.db.collection(REPORTS).document()
        doc_ref.set(data)
        return doc_ref.id

    def upsert_device(self, device_id: str, fields: Dict) -> None:
        self.db.collection(DEVICES).document(device_id).set(fields, merge=True)

    def commit_updates(self, updates: Dict[DocumentPath, Dict]) -> int:
        """
        Apply field updates to several documents in one atomic write batch.

        Args:
            updates: {(collection, document_id): {field: value}}; values may be
                firestore.DELETE_FIELD to erase a field

        Returns:
            Number of documents written

        Raises:
            BatchTooLarge: more documents than one batch can carry
            google.api_core.exceptions.GoogleAPIError: the commit failed
        """
        if not updates:
            return 0
        if len(updates) > MAX_BATCH_WRITES:
            raise BatchTooLarge(
                f"Cannot update {len(updates)} documents atomically (limit {MAX_BATCH_WRITES})"
            )

        batch = self.db.batch()
        for (collection, document_id), fields in updates.items():
            batch.update(self.db.collection(collection).document(document_id), fields)
        batch.commit()

        logger.debug(f"Committed batch of {len(updates)} document updates")
        return len(updates)

    # Subscriptions

    def subscribe(self, collection: str, callback: Callable):
        """
        Watch a whole collection. The callback receives (docs, changes, read_time)
        on every change; the returned watch must be unsubscribed by its owner.
        """
        return self.db.collection(collection).on_snapshot(callback)


# Global store instance (singleton pattern)
_report_store = None


def get_report_store() -> ReportStore:
    """
    Get or create ReportStore singleton instance.

    Returns:
        ReportStore: The global store gateway
    """
    global _report_store
    if _report_store is None:
        _report_store = ReportStore()
    return _report_store
