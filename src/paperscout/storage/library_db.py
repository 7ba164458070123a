"""SQLite-backed storage for papers, favorites, ratings, history and proposals.

Provides a lightweight local database (default ~/.paperscout/library.db).
One LibraryDB is constructed at process start and passed to the components
that need it; every write is a single-row upsert keyed by paper id or by
(user_id, paper_id), so concurrent requests resolve as last-writer-wins.

Any sqlite3 failure is re-raised as StorageUnavailableError.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from paperscout.errors import StorageUnavailableError
from paperscout.identifiers import is_arxiv_id, strip_version
from paperscout.models import (
    Favorite,
    HistoryEntry,
    Paper,
    Rating,
    ResearchProposal,
    dedupe_preserving_order,
    parse_date,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS papers (
    id TEXT PRIMARY KEY,
    arxiv_id TEXT,
    provider_id TEXT,
    title TEXT NOT NULL,
    authors TEXT DEFAULT '[]',
    abstract TEXT,
    categories TEXT DEFAULT '[]',
    published_date TEXT,
    external_url TEXT,
    citation_count INTEGER DEFAULT 0,
    source TEXT,
    updated_at REAL
);

CREATE INDEX IF NOT EXISTS idx_papers_arxiv ON papers(arxiv_id);
CREATE INDEX IF NOT EXISTS idx_papers_provider ON papers(provider_id);

CREATE TABLE IF NOT EXISTS favorites (
    user_id TEXT NOT NULL,
    paper_id TEXT NOT NULL,
    tags TEXT DEFAULT '[]',
    created_at REAL,
    PRIMARY KEY (user_id, paper_id)
);

CREATE TABLE IF NOT EXISTS ratings (
    user_id TEXT NOT NULL,
    paper_id TEXT NOT NULL,
    rating INTEGER NOT NULL,
    created_at REAL,
    PRIMARY KEY (user_id, paper_id)
);

CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    paper_id TEXT NOT NULL,
    category TEXT,
    viewed_at REAL
);

CREATE INDEX IF NOT EXISTS idx_history_user ON history(user_id);

CREATE TABLE IF NOT EXISTS proposals (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    source_paper_ids TEXT DEFAULT '[]',
    open_problems TEXT DEFAULT '[]',
    created_at REAL
);
"""


def _timestamp(value: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(value) if value is not None else None


class LibraryDB:
    """SQLite storage for the paper cache and per-user collections."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            db_path = Path.home() / ".paperscout" / "library.db"
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._ensure_schema()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            except sqlite3.Error as e:
                raise StorageUnavailableError(f"Cannot open database {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "LibraryDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        """Serialize access and translate sqlite3 errors."""
        with self._lock:
            try:
                yield self.conn
            except sqlite3.Error as e:
                logger.error("Storage failure while %s: %s", action, e)
                raise StorageUnavailableError(f"Storage failure while {action}: {e}") from e

    def _ensure_schema(self):
        """Create tables if they don't exist."""
        with self._guard("creating schema") as conn:
            conn.executescript(_SCHEMA_SQL)
            row = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO meta (key, value) VALUES ('schema_version', ?)",
                    (str(SCHEMA_VERSION),),
                )
                conn.commit()

    # ── Papers ──────────────────────────────────────────────────────────

    def upsert_paper(self, paper: Paper) -> None:
        """Insert a paper, or refresh the mutable fields of an existing row."""
        self.upsert_papers([paper])

    def upsert_papers(self, papers: list[Paper]) -> None:
        """Insert or update papers.

        Cross-reference IDs are only overwritten when the new record knows them.
        """
        now = time.time()
        with self._guard("upserting papers") as conn:
            for p in papers:
                conn.execute(
                    """INSERT INTO papers (id, arxiv_id, provider_id, title, authors, abstract,
                       categories, published_date, external_url, citation_count, source, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                       title=excluded.title, authors=excluded.authors,
                       abstract=excluded.abstract, categories=excluded.categories,
                       published_date=excluded.published_date,
                       external_url=excluded.external_url,
                       citation_count=excluded.citation_count,
                       arxiv_id=COALESCE(excluded.arxiv_id, papers.arxiv_id),
                       provider_id=COALESCE(excluded.provider_id, papers.provider_id),
                       updated_at=excluded.updated_at""",
                    (
                        p.id,
                        p.arxiv_id,
                        p.provider_id,
                        p.title,
                        json.dumps(p.authors),
                        p.abstract,
                        json.dumps(p.categories),
                        p.published_date.isoformat() if p.published_date else None,
                        p.external_url,
                        p.citation_count,
                        p.source,
                        now,
                    ),
                )
            conn.commit()

    def get_paper(self, paper_id: str) -> Optional[Paper]:
        """Look up a paper by primary id, falling back to its arXiv or provider id.

        An unversioned arXiv ID also matches a stored versioned record.
        """
        with self._guard("reading paper") as conn:
            row = conn.execute("SELECT * FROM papers WHERE id = ?", (paper_id,)).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT * FROM papers WHERE arxiv_id = ? OR provider_id = ? LIMIT 1",
                    (paper_id, paper_id),
                ).fetchone()
            if row is None and is_arxiv_id(paper_id) and strip_version(paper_id) == paper_id:
                # Unversioned arXiv ID: match any stored version, latest write first
                row = conn.execute(
                    "SELECT * FROM papers WHERE id LIKE ? OR arxiv_id LIKE ? "
                    "ORDER BY updated_at DESC LIMIT 1",
                    (f"{paper_id}v%", f"{paper_id}v%"),
                ).fetchone()
        return self._row_to_paper(row) if row is not None else None

    def paper_count(self) -> int:
        with self._guard("counting papers") as conn:
            row = conn.execute("SELECT COUNT(*) as cnt FROM papers").fetchone()
        return row["cnt"]

    # ── Favorites ───────────────────────────────────────────────────────

    def add_favorite(self, user_id: str, paper_id: str, tags: Optional[list[str]] = None) -> bool:
        """Bookmark a paper. Returns False if it was already a favorite."""
        with self._guard("adding favorite") as conn:
            cur = conn.execute(
                """INSERT OR IGNORE INTO favorites (user_id, paper_id, tags, created_at)
                   VALUES (?, ?, ?, ?)""",
                (user_id, paper_id, json.dumps(dedupe_preserving_order(tags or [])), time.time()),
            )
            conn.commit()
        return cur.rowcount > 0

    def remove_favorite(self, user_id: str, paper_id: str) -> bool:
        """Delete a favorite. Returns False if there was nothing to delete."""
        with self._guard("removing favorite") as conn:
            cur = conn.execute(
                "DELETE FROM favorites WHERE user_id = ? AND paper_id = ?", (user_id, paper_id)
            )
            conn.commit()
        return cur.rowcount > 0

    def toggle_favorite(
        self, user_id: str, paper_id: str, tags: Optional[list[str]] = None
    ) -> bool:
        """Flip favorite state. Returns True if the paper is now a favorite."""
        with self._lock:
            if self.remove_favorite(user_id, paper_id):
                return False
            self.add_favorite(user_id, paper_id, tags)
            return True

    def is_favorite(self, user_id: str, paper_id: str) -> bool:
        with self._guard("checking favorite") as conn:
            row = conn.execute(
                "SELECT 1 FROM favorites WHERE user_id = ? AND paper_id = ?", (user_id, paper_id)
            ).fetchone()
        return row is not None

    def update_favorite_tags(self, user_id: str, paper_id: str, tags: list[str]) -> bool:
        """Replace the whole tag list. Returns False if the favorite does not exist."""
        with self._guard("updating tags") as conn:
            cur = conn.execute(
                "UPDATE favorites SET tags = ? WHERE user_id = ? AND paper_id = ?",
                (json.dumps(dedupe_preserving_order(tags)), user_id, paper_id),
            )
            conn.commit()
        return cur.rowcount > 0

    def get_favorites(self, user_id: str, tag: Optional[str] = None) -> list[Favorite]:
        """A user's favorites, newest first, optionally only those carrying ``tag``."""
        with self._guard("reading favorites") as conn:
            rows = conn.execute(
                "SELECT * FROM favorites WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        favorites = [
            Favorite(
                user_id=r["user_id"],
                paper_id=r["paper_id"],
                tags=json.loads(r["tags"]) if r["tags"] else [],
                created_at=_timestamp(r["created_at"]),
            )
            for r in rows
        ]
        if tag is not None:
            favorites = [f for f in favorites if tag in f.tags]
        return favorites

    # ── Ratings ─────────────────────────────────────────────────────────

    def add_rating(self, user_id: str, paper_id: str, rating: int) -> None:
        """Record a like (1) or dislike (-1); re-rating overwrites."""
        Rating(user_id=user_id, paper_id=paper_id, rating=rating)
        with self._guard("adding rating") as conn:
            conn.execute(
                """INSERT INTO ratings (user_id, paper_id, rating, created_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(user_id, paper_id) DO UPDATE SET rating=excluded.rating""",
                (user_id, paper_id, rating, time.time()),
            )
            conn.commit()

    def get_ratings(self, user_id: str) -> list[Rating]:
        with self._guard("reading ratings") as conn:
            rows = conn.execute(
                "SELECT * FROM ratings WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [
            Rating(
                user_id=r["user_id"],
                paper_id=r["paper_id"],
                rating=r["rating"],
                created_at=_timestamp(r["created_at"]),
            )
            for r in rows
        ]

    # ── History ─────────────────────────────────────────────────────────

    def add_history(self, user_id: str, paper_id: str, category: Optional[str] = None) -> None:
        with self._guard("adding history") as conn:
            conn.execute(
                "INSERT INTO history (user_id, paper_id, category, viewed_at) VALUES (?, ?, ?, ?)",
                (user_id, paper_id, category, time.time()),
            )
            conn.commit()

    def get_history(
        self, user_id: str, category: Optional[str] = None, limit: int = 50
    ) -> list[HistoryEntry]:
        """Most recent views first."""
        sql = "SELECT * FROM history WHERE user_id = ?"
        params: list = [user_id]
        if category:
            sql += " AND category = ?"
            params.append(category)
        sql += " ORDER BY viewed_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._guard("reading history") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            HistoryEntry(
                user_id=r["user_id"],
                paper_id=r["paper_id"],
                category=r["category"],
                viewed_at=_timestamp(r["viewed_at"]),
            )
            for r in rows
        ]

    # ── Proposals ───────────────────────────────────────────────────────

    def add_proposal(self, proposal: ResearchProposal) -> None:
        created = proposal.created_at.timestamp() if proposal.created_at else time.time()
        with self._guard("adding proposal") as conn:
            conn.execute(
                """INSERT INTO proposals (id, user_id, title, description, source_paper_ids,
                   open_problems, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    proposal.id,
                    proposal.user_id,
                    proposal.title,
                    proposal.description,
                    json.dumps(proposal.source_paper_ids),
                    json.dumps(proposal.open_problems),
                    created,
                ),
            )
            conn.commit()

    def get_proposals(self, user_id: str) -> list[ResearchProposal]:
        with self._guard("reading proposals") as conn:
            rows = conn.execute(
                "SELECT * FROM proposals WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_proposal(r) for r in rows]

    def get_proposal(self, proposal_id: str) -> Optional[ResearchProposal]:
        with self._guard("reading proposal") as conn:
            row = conn.execute("SELECT * FROM proposals WHERE id = ?", (proposal_id,)).fetchone()
        return self._row_to_proposal(row) if row is not None else None

    def delete_proposal(self, user_id: str, proposal_id: str) -> bool:
        with self._guard("deleting proposal") as conn:
            cur = conn.execute(
                "DELETE FROM proposals WHERE id = ? AND user_id = ?", (proposal_id, user_id)
            )
            conn.commit()
        return cur.rowcount > 0

    # ── Helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_paper(row: sqlite3.Row) -> Paper:
        return Paper(
            id=row["id"],
            title=row["title"],
            authors=json.loads(row["authors"]) if row["authors"] else [],
            abstract=row["abstract"],
            categories=json.loads(row["categories"]) if row["categories"] else [],
            published_date=parse_date(row["published_date"]),
            external_url=row["external_url"],
            citation_count=row["citation_count"] or 0,
            arxiv_id=row["arxiv_id"],
            provider_id=row["provider_id"],
            source=row["source"] or "arxiv",
        )

    @staticmethod
    def _row_to_proposal(row: sqlite3.Row) -> ResearchProposal:
        return ResearchProposal(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            source_paper_ids=json.loads(row["source_paper_ids"]) if row["source_paper_ids"] else [],
            open_problems=json.loads(row["open_problems"]) if row["open_problems"] else [],
            created_at=_timestamp(row["created_at"]),
        )
