"""
Firestore query helpers.

NOTE: For firebase_admin SDK, we use positional arguments which still work.
The deprecation warning is just a warning - the functionality is still supported.
"""

from typing import Any, Dict


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "device_id", "==", device_id)
        query = where_filter(query, "status", "==", "blocked")
    """
    return query.where(field_path, op_string, value)


def snapshot_to_dict(doc) -> Dict[str, Any]:
    """Document snapshot as a plain dict carrying its document ID."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data
