try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from app.clients.credential_store import CredentialStore
from app.models.credentials import CredentialRecord
from app.services.credential_cipher import CredentialCipher

_T0 = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def _record(index: int, refresh_token: str | None = "refresh") -> CredentialRecord:
    created = _T0 + timedelta(minutes=index)
    return CredentialRecord(
        access_token=f"access-{index}",
        refresh_token=refresh_token,
        expires_at=created + timedelta(hours=1),
        created_at=created,
    )


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(str(tmp_path / "tokens.db"), CredentialCipher(secret="secret"))


def test_empty_store_has_no_current_record(store: CredentialStore) -> None:
    assert store.query_most_recent() is None
    assert store.count() == 0


def test_most_recent_record_wins_and_history_is_kept(store: CredentialStore) -> None:
    store.insert(_record(1))
    store.insert(_record(3))
    store.insert(_record(2))

    current = store.query_most_recent()

    assert current is not None
    assert current.access_token == "access-3"
    assert current.expires_at == _T0 + timedelta(minutes=3, hours=1)
    assert store.count() == 3


def test_tokens_are_encrypted_at_rest(tmp_path) -> None:
    db_path = tmp_path / "tokens.db"
    store = CredentialStore(str(db_path), CredentialCipher(secret="secret"))
    store.insert(_record(1, refresh_token=None))

    with sqlite3.connect(db_path) as conn:
        access, refresh = conn.execute(
            "SELECT access_token_encrypted, refresh_token_encrypted FROM google_tokens"
        ).fetchone()

    assert access != "access-1"
    assert refresh is None
    assert store.query_most_recent().refresh_token is None


def test_prune_keeps_newest_rows(store: CredentialStore) -> None:
    for index in range(5):
        store.insert(_record(index))

    removed = store.prune(keep=2)

    assert removed == 3
    assert store.count() == 2
    assert store.query_most_recent().access_token == "access-4"


def test_prune_refuses_to_drop_current_record(store: CredentialStore) -> None:
    with pytest.raises(ValueError):
        store.prune(keep=0)
