"""SQLite-backed history of issued OAuth credentials."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from app.models.credentials import CredentialRecord

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.credential_cipher import CredentialCipher

logger = logging.getLogger(__name__)


class CredentialStore:
    """Append-only token table; the newest row is the current credential.

    Rows are inserted for every issuance and never updated, so older rows
    remain available as an audit trail unless ``prune`` is called.
    """

    def __init__(self, db_path: str, cipher: "CredentialCipher") -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS google_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

    def insert(self, record: CredentialRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO google_tokens (
                    access_token_encrypted, refresh_token_encrypted, expires_at, created_at
                )
                VALUES (?, ?, ?, ?)
                """,
                (
                    self._cipher.encrypt(record.access_token),
                    self._cipher.encrypt_optional(record.refresh_token),
                    record.expires_at.isoformat(),
                    record.created_at.isoformat(),
                ),
            )

    def query_most_recent(self) -> Optional[CredentialRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM google_tokens ORDER BY created_at DESC, id DESC LIMIT 1"
            ).fetchone()
        if not row:
            return None
        return CredentialRecord(
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt_optional(row["refresh_token_encrypted"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM google_tokens").fetchone()[0]

    def prune(self, *, keep: int) -> int:
        """Delete all but the newest ``keep`` rows; return how many were removed."""
        if keep < 1:
            raise ValueError("At least the current credential must be kept.")
        with self._connect() as conn:
            cursor = conn.execute(
                """
                DELETE FROM google_tokens WHERE id NOT IN (
                    SELECT id FROM google_tokens
                    ORDER BY created_at DESC, id DESC LIMIT ?
                )
                """,
                (keep,),
            )
            removed = cursor.rowcount
        if removed:
            logger.info("Pruned %s superseded credential rows", removed)
        return removed


__all__ = ["CredentialStore"]
