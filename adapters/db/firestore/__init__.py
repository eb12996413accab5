"""Firestore record store and client factory."""

from .client import FirestoreClientFactory, get_firestore_client  # noqa: F401
from .record_store import FirestoreRecordStore  # noqa: F401
