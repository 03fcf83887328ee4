# src/storage/monitor_db.py

"""SQLite-backed store for competitors, pages, snapshots and changes."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings
from src.models.change import Change
from src.models.errors import StoreError
from src.models.page import Competitor, MonitoredPage
from src.models.snapshot import Snapshot

logger = logging.getLogger("pagewatch.store")

# Change rows outlive the snapshots they were computed from: pruning a
# snapshot nulls the reference but keeps the change and its fingerprints.
_SCHEMA = """\
CREATE TABLE IF NOT EXISTS competitors (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT    NOT NULL,
    website_url     TEXT    NOT NULL,
    alert_recipient TEXT,
    active          INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS pages (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    competitor_id INTEGER NOT NULL
                  REFERENCES competitors(id) ON DELETE CASCADE,
    url           TEXT    NOT NULL,
    label         TEXT    NOT NULL DEFAULT 'Homepage',
    active        INTEGER NOT NULL DEFAULT 1,
    last_checked  TEXT,
    created_at    TEXT    NOT NULL,
    UNIQUE (competitor_id, url)
);

CREATE TABLE IF NOT EXISTS snapshots (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id         INTEGER NOT NULL
                    REFERENCES pages(id) ON DELETE CASCADE,
    fingerprint     TEXT    NOT NULL,
    raw_html        TEXT    NOT NULL,
    normalized_text TEXT    NOT NULL,
    price_value     REAL,
    price_raw       TEXT,
    currency        TEXT,
    captured_at     TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS changes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id         INTEGER NOT NULL
                    REFERENCES pages(id) ON DELETE CASCADE,
    old_snapshot_id INTEGER
                    REFERENCES snapshots(id) ON DELETE SET NULL,
    new_snapshot_id INTEGER
                    REFERENCES snapshots(id) ON DELETE SET NULL,
    old_fingerprint TEXT,
    new_fingerprint TEXT    NOT NULL,
    summary         TEXT    NOT NULL,
    analysis        TEXT,
    significance    TEXT    NOT NULL
                    CHECK (significance IN ('low', 'medium', 'high')),
    change_type     TEXT    NOT NULL
                    CHECK (change_type IN ('CONTENT', 'PRICE_CHANGE')),
    old_price       REAL,
    new_price       REAL,
    price_delta     REAL,
    price_delta_pct REAL,
    notified        INTEGER NOT NULL DEFAULT 0,
    detected_at     TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pages_competitor
    ON pages(competitor_id);
CREATE INDEX IF NOT EXISTS idx_snapshots_page_date
    ON snapshots(page_id, captured_at);
CREATE INDEX IF NOT EXISTS idx_changes_page_date
    ON changes(page_id, detected_at);
"""

_PAGE_COLUMNS = (
    "p.id, p.competitor_id, p.url, p.label, p.active, "
    "p.last_checked, p.created_at, c.name AS competitor_name"
)


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_competitor(row: sqlite3.Row) -> Competitor:
    return Competitor(
        id=row["id"],
        name=row["name"],
        website_url=row["website_url"],
        alert_recipient=row["alert_recipient"],
        active=bool(row["active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_page(row: sqlite3.Row) -> MonitoredPage:
    return MonitoredPage(
        id=row["id"],
        competitor_id=row["competitor_id"],
        url=row["url"],
        label=row["label"],
        active=bool(row["active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        last_checked=_parse_ts(row["last_checked"]),
        competitor_name=row["competitor_name"] or "",
    )


def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
    return Snapshot(
        id=row["id"],
        page_id=row["page_id"],
        raw_html=row["raw_html"],
        normalized_text=row["normalized_text"],
        fingerprint=row["fingerprint"],
        price_value=row["price_value"],
        price_raw=row["price_raw"],
        currency=row["currency"],
        captured_at=datetime.fromisoformat(row["captured_at"]),
    )


def _row_to_change(row: sqlite3.Row) -> Change:
    return Change(
        id=row["id"],
        page_id=row["page_id"],
        old_fingerprint=row["old_fingerprint"],
        new_fingerprint=row["new_fingerprint"],
        summary=row["summary"],
        analysis=row["analysis"],
        significance=row["significance"],
        change_type=row["change_type"],
        old_price=row["old_price"],
        new_price=row["new_price"],
        price_delta=row["price_delta"],
        price_delta_pct=row["price_delta_pct"],
        notified=bool(row["notified"]),
        detected_at=datetime.fromisoformat(row["detected_at"]),
        old_snapshot_id=row["old_snapshot_id"],
        new_snapshot_id=row["new_snapshot_id"],
    )


def _insert_snapshot(conn: sqlite3.Connection, snapshot: Snapshot) -> int:
    cur = conn.execute(
        "INSERT INTO snapshots "
        "(page_id, fingerprint, raw_html, normalized_text, "
        " price_value, price_raw, currency, captured_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            snapshot.page_id, snapshot.fingerprint, snapshot.raw_html,
            snapshot.normalized_text, snapshot.price_value,
            snapshot.price_raw, snapshot.currency,
            _ts(snapshot.captured_at),
        ),
    )
    return int(cur.lastrowid or 0)


def _insert_change(conn: sqlite3.Connection, change: Change) -> int:
    cur = conn.execute(
        "INSERT INTO changes "
        "(page_id, old_snapshot_id, new_snapshot_id, "
        " old_fingerprint, new_fingerprint, summary, analysis, "
        " significance, change_type, old_price, new_price, "
        " price_delta, price_delta_pct, detected_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            change.page_id, change.old_snapshot_id, change.new_snapshot_id,
            change.old_fingerprint, change.new_fingerprint, change.summary,
            change.analysis, change.significance, change.change_type,
            change.old_price, change.new_price, change.price_delta,
            change.price_delta_pct, _ts(change.detected_at),
        ),
    )
    return int(cur.lastrowid or 0)


class MonitorDB:
    """SQLite store behind the page monitor.

    Every ``sqlite3.Error`` is re-raised as :class:`StoreError` so
    callers can tell persistence failures from fetch failures.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open store at {path}: {exc}") from exc
        logger.debug("MonitorDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a block in a transaction, translating sqlite errors."""
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as exc:
            logger.error("Store %s failed: %s", action, exc)
            raise StoreError(f"{action} failed: {exc}") from exc

    # ── Competitors & pages ──────────────────────────────

    def add_competitor(
        self,
        name: str,
        website_url: str,
        alert_recipient: str | None = None,
    ) -> Competitor:
        """Register a competitor and return it."""
        now = datetime.now()
        with self._guard("add_competitor") as conn:
            cur = conn.execute(
                "INSERT INTO competitors "
                "(name, website_url, alert_recipient, created_at) "
                "VALUES (?, ?, ?, ?)",
                (name, website_url, alert_recipient, _ts(now)),
            )
        return Competitor(
            id=int(cur.lastrowid or 0),
            name=name,
            website_url=website_url,
            alert_recipient=alert_recipient,
            active=True,
            created_at=now,
        )

    def get_competitor(self, competitor_id: int) -> Competitor | None:
        """Look up a competitor by id."""
        with self._guard("get_competitor") as conn:
            row = conn.execute(
                "SELECT * FROM competitors WHERE id = ?",
                (competitor_id,),
            ).fetchone()
        return _row_to_competitor(row) if row else None

    def list_competitors(
        self, active_only: bool = True,
    ) -> list[Competitor]:
        """Return competitors ordered by name."""
        query = "SELECT * FROM competitors"
        if active_only:
            query += " WHERE active = 1"
        with self._guard("list_competitors") as conn:
            rows = conn.execute(query + " ORDER BY name").fetchall()
        return [_row_to_competitor(r) for r in rows]

    def add_page(
        self,
        competitor_id: int,
        url: str,
        label: str = "Homepage",
    ) -> MonitoredPage:
        """Start monitoring *url* for a competitor."""
        now = datetime.now()
        with self._guard("add_page") as conn:
            cur = conn.execute(
                "INSERT INTO pages "
                "(competitor_id, url, label, created_at) "
                "VALUES (?, ?, ?, ?)",
                (competitor_id, url, label, _ts(now)),
            )
        page = self.get_page(int(cur.lastrowid or 0))
        if page is None:
            raise StoreError(f"Page for {url} vanished after insert")
        return page

    def get_page(self, page_id: int) -> MonitoredPage | None:
        """Look up a page (with its competitor's name) by id."""
        with self._guard("get_page") as conn:
            row = conn.execute(
                f"SELECT {_PAGE_COLUMNS} FROM pages p "
                "JOIN competitors c ON c.id = p.competitor_id "
                "WHERE p.id = ?",
                (page_id,),
            ).fetchone()
        return _row_to_page(row) if row else None

    def list_pages(
        self, competitor_id: int, active_only: bool = True,
    ) -> list[MonitoredPage]:
        """Return a competitor's pages in creation order."""
        query = (
            f"SELECT {_PAGE_COLUMNS} FROM pages p "
            "JOIN competitors c ON c.id = p.competitor_id "
            "WHERE p.competitor_id = ?"
        )
        if active_only:
            query += " AND p.active = 1"
        with self._guard("list_pages") as conn:
            rows = conn.execute(
                query + " ORDER BY p.id", (competitor_id,),
            ).fetchall()
        return [_row_to_page(r) for r in rows]

    def touch_page(
        self, page_id: int, checked_at: datetime | None = None,
    ) -> None:
        """Record when a page was last checked."""
        with self._guard("touch_page") as conn:
            conn.execute(
                "UPDATE pages SET last_checked = ? WHERE id = ?",
                (_ts(checked_at or datetime.now()), page_id),
            )

    # ── Snapshots ────────────────────────────────────────

    def get_latest_snapshot(self, page_id: int) -> Snapshot | None:
        """Most recent snapshot for a page (ties: last inserted)."""
        with self._guard("get_latest_snapshot") as conn:
            row = conn.execute(
                "SELECT * FROM snapshots WHERE page_id = ? "
                "ORDER BY captured_at DESC, id DESC LIMIT 1",
                (page_id,),
            ).fetchone()
        return _row_to_snapshot(row) if row else None

    def create_snapshot(
        self,
        page_id: int,
        raw_html: str,
        normalized_text: str,
        fingerprint: str,
        price_value: float | None = None,
        price_raw: str | None = None,
        currency: str | None = None,
        captured_at: datetime | None = None,
    ) -> Snapshot:
        """Append a snapshot for a page."""
        snapshot = Snapshot(
            id=0,
            page_id=page_id,
            raw_html=raw_html,
            normalized_text=normalized_text,
            fingerprint=fingerprint,
            price_value=price_value,
            price_raw=price_raw,
            currency=currency,
            captured_at=captured_at or datetime.now(),
        )
        with self._guard("create_snapshot") as conn:
            snapshot_id = _insert_snapshot(conn, snapshot)
        return replace(snapshot, id=snapshot_id)

    def list_snapshots(self, page_id: int) -> list[Snapshot]:
        """All retained snapshots for a page, newest first."""
        with self._guard("list_snapshots") as conn:
            rows = conn.execute(
                "SELECT * FROM snapshots WHERE page_id = ? "
                "ORDER BY captured_at DESC, id DESC",
                (page_id,),
            ).fetchall()
        return [_row_to_snapshot(r) for r in rows]

    def prune_snapshots(self, page_id: int, keep: int) -> int:
        """Delete all but the *keep* most recent snapshots of a page.

        Runs as a single statement so readers never observe a
        partially pruned history. Returns the number deleted.
        """
        if keep < 1:
            raise ValueError("keep must be >= 1 to preserve the diff baseline")
        with self._guard("prune_snapshots") as conn:
            cur = conn.execute(
                "DELETE FROM snapshots WHERE page_id = ? AND id NOT IN ("
                "  SELECT id FROM snapshots WHERE page_id = ? "
                "  ORDER BY captured_at DESC, id DESC LIMIT ?"
                ")",
                (page_id, page_id, keep),
            )
        deleted = cur.rowcount
        if deleted:
            logger.info(
                "Pruned %d old snapshot(s) for page %d", deleted, page_id,
            )
        return deleted

    # ── Changes ──────────────────────────────────────────

    def create_change(
        self,
        page_id: int,
        new_fingerprint: str,
        summary: str,
        significance: str,
        change_type: str,
        old_fingerprint: str | None = None,
        analysis: str | None = None,
        old_price: float | None = None,
        new_price: float | None = None,
        price_delta: float | None = None,
        price_delta_pct: float | None = None,
        old_snapshot_id: int | None = None,
        new_snapshot_id: int | None = None,
        detected_at: datetime | None = None,
    ) -> Change:
        """Append a change record for a page."""
        change = Change(
            id=0,
            page_id=page_id,
            old_fingerprint=old_fingerprint,
            new_fingerprint=new_fingerprint,
            summary=summary,
            analysis=analysis,
            significance=significance,
            change_type=change_type,
            old_price=old_price,
            new_price=new_price,
            price_delta=price_delta,
            price_delta_pct=price_delta_pct,
            notified=False,
            detected_at=detected_at or datetime.now(),
            old_snapshot_id=old_snapshot_id,
            new_snapshot_id=new_snapshot_id,
        )
        with self._guard("create_change") as conn:
            change.id = _insert_change(conn, change)
        return change

    def record_check(
        self,
        snapshot: Snapshot,
        change: Change | None = None,
        checked_at: datetime | None = None,
    ) -> tuple[Snapshot, Change | None]:
        """Persist the outcome of one check cycle in a single transaction.

        Stores *snapshot*, links and stores *change* against it when one
        was detected, and stamps the page's ``last_checked``. Either all
        of it is committed or none of it.

        Returns the stored snapshot and change with their ids assigned.
        """
        stored_change: Change | None = None
        with self._guard("record_check") as conn:
            stored = replace(snapshot, id=_insert_snapshot(conn, snapshot))
            if change is not None:
                stored_change = replace(change, new_snapshot_id=stored.id)
                stored_change.id = _insert_change(conn, stored_change)
            conn.execute(
                "UPDATE pages SET last_checked = ? WHERE id = ?",
                (_ts(checked_at or datetime.now()), snapshot.page_id),
            )
        return stored, stored_change

    def get_change(self, change_id: int) -> Change | None:
        """Look up a change by id."""
        with self._guard("get_change") as conn:
            row = conn.execute(
                "SELECT * FROM changes WHERE id = ?", (change_id,),
            ).fetchone()
        return _row_to_change(row) if row else None

    def mark_notified(self, change_id: int) -> bool:
        """Flag a change as alerted. Returns False if it does not exist."""
        with self._guard("mark_notified") as conn:
            cur = conn.execute(
                "UPDATE changes SET notified = 1 WHERE id = ?",
                (change_id,),
            )
        return cur.rowcount > 0

    def list_changes(
        self,
        page_id: int | None = None,
        competitor_id: int | None = None,
        limit: int = 50,
    ) -> list[Change]:
        """Recent changes, newest first, optionally scoped."""
        query = "SELECT ch.* FROM changes ch"
        params: list[object] = []
        if competitor_id is not None:
            query += (
                " JOIN pages p ON p.id = ch.page_id"
                " WHERE p.competitor_id = ?"
            )
            params.append(competitor_id)
            if page_id is not None:
                query += " AND ch.page_id = ?"
                params.append(page_id)
        elif page_id is not None:
            query += " WHERE ch.page_id = ?"
            params.append(page_id)
        query += " ORDER BY ch.detected_at DESC, ch.id DESC LIMIT ?"
        params.append(limit)

        with self._guard("list_changes") as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_change(r) for r in rows]
