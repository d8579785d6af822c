from unittest.mock import MagicMock

import pytest

from services.errors import ConfigError, PolicyStoreError
from services.policy_store import FirestorePolicyStore, policy_document_path


PATH = "users/u1/exchange/hyperliquid/tradeType/futures/modules/aiSignalTrader"


def make_store():
    client = MagicMock()
    return FirestorePolicyStore("u1", client=client), client.document.return_value


def snapshot(data, exists=True):
    snap = MagicMock()
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


def test_document_path():
    assert policy_document_path("u1", "hyperliquid", "futures") == PATH
    store, _ = make_store()
    assert store.path == PATH


def test_user_id_is_required():
    with pytest.raises(ConfigError):
        FirestorePolicyStore("", client=MagicMock())


def test_get_existing_and_missing():
    store, doc = make_store()
    doc.get.return_value = snapshot({"isEnabled": True})
    assert store.get() == {"isEnabled": True}

    doc.get.return_value = snapshot(None, exists=False)
    assert store.get() is None


def test_errors_are_wrapped():
    store, doc = make_store()
    doc.update.side_effect = RuntimeError("PERMISSION_DENIED")
    with pytest.raises(PolicyStoreError, match="PERMISSION_DENIED"):
        store.update({"isEnabled": True})


def test_watch_translates_snapshots():
    store, doc = make_store()
    received = []
    store.watch(received.append)
    on_snapshot = doc.on_snapshot.call_args.args[0]

    on_snapshot([snapshot({"riskPercentage": 1})], [], None)
    on_snapshot([snapshot(None, exists=False)], [], None)
    on_snapshot([], [], None)

    assert received == [{"riskPercentage": 1}, None, None]


def test_watch_reports_callback_errors():
    store, doc = make_store()
    errors = []

    def broken(document):
        raise RuntimeError("bad")

    store.watch(broken, errors.append)
    doc.on_snapshot.call_args.args[0]([snapshot({})], [], None)
    assert len(errors) == 1
