# policy_store.py - Trading policy document storage (Firestore).
"""
The trading policy lives in one Firestore document per user/exchange/trade type:

    users/{user_id}/exchange/{exchange}/tradeType/{trade_type}/modules/aiSignalTrader

The Firebase Admin SDK is synchronous and delivers snapshot callbacks on
its own background thread. ConfigSynchronizer handles the hand-off to the
event loop; this module only talks to Firestore.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable

import firebase_admin
from firebase_admin import credentials, firestore

from services import settings
from services.errors import ConfigError, PolicyStoreError


# (document dict or None when the document does not exist)
DocumentCallback = Callable[[dict | None], None]
ErrorCallback = Callable[[Exception], None]


class PolicyStore(ABC):
    """Interface for the remote policy document."""

    @abstractmethod
    def get(self) -> dict | None:
        """Return the stored document, or None if it does not exist."""

    @abstractmethod
    def put(self, document: dict) -> None:
        """Create or replace the whole document."""

    @abstractmethod
    def update(self, fields: dict) -> None:
        """Update some fields of an existing document."""

    @abstractmethod
    def watch(self, on_document: DocumentCallback, on_error: ErrorCallback | None = None) -> Any:
        """
        Start listening for document changes.

        The callback fires once with the current state, then on every change.

        Returns:
            A watch handle with an unsubscribe() method
        """


_init_lock = threading.Lock()


def init_firebase_admin() -> None:
    """Initialize the Firebase Admin SDK exactly once from service account env vars."""
    if firebase_admin._apps:
        return

    with _init_lock:
        if firebase_admin._apps:
            return

        if not (settings.FIREBASE_PROJECT_ID and settings.FIREBASE_CLIENT_EMAIL and settings.FIREBASE_PRIVATE_KEY):
            raise ConfigError("Missing Firebase configuration")

        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            # .env files usually carry the key with escaped newlines
            "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        firebase_admin.initialize_app(cred, {"projectId": settings.FIREBASE_PROJECT_ID})
        print("[Firebase] Initialized successfully")


def policy_document_path(user_id: str, exchange: str, trade_type: str) -> str:
    return f"users/{user_id}/exchange/{exchange}/tradeType/{trade_type}/modules/aiSignalTrader"


class FirestorePolicyStore(PolicyStore):
    """Policy document backed by Cloud Firestore."""

    def __init__(
        self,
        user_id: str,
        exchange: str = "hyperliquid",
        trade_type: str = "futures",
        client: Any = None
    ):
        if not user_id:
            raise ConfigError("USER_ID is not set")

        self.path = policy_document_path(user_id, exchange, trade_type)
        if client is None:
            init_firebase_admin()
            client = firestore.client()
        self._db = client

    def _doc(self):
        return self._db.document(self.path)

    def get(self) -> dict | None:
        try:
            snapshot = self._doc().get()
        except Exception as e:
            raise PolicyStoreError(f"Failed to read {self.path}: {e}") from e
        return snapshot.to_dict() if snapshot.exists else None

    def put(self, document: dict) -> None:
        try:
            self._doc().set(document)
        except Exception as e:
            raise PolicyStoreError(f"Failed to write {self.path}: {e}") from e
        print("[Firebase] Trading config saved")

    def update(self, fields: dict) -> None:
        try:
            self._doc().update(fields)
        except Exception as e:
            raise PolicyStoreError(f"Failed to update {self.path}: {e}") from e
        print(f"[Firebase] Trading config updated: {fields}")

    def watch(self, on_document: DocumentCallback, on_error: ErrorCallback | None = None) -> Any:
        def on_snapshot(doc_snapshots, changes, read_time):
            try:
                snapshot = doc_snapshots[0] if doc_snapshots else None
                if snapshot is not None and snapshot.exists:
                    on_document(snapshot.to_dict() or {})
                else:
                    on_document(None)
            except Exception as e:
                print(f"[Firebase] Error in snapshot callback: {e}")
                if on_error:
                    on_error(e)

        watch = self._doc().on_snapshot(on_snapshot)
        print(f"[Firebase] Listening for changes on {self.path}")
        return watch
