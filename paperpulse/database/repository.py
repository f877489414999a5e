"""Paper repository for database operations.

Derived rows (enrichment, structured extraction, benchmark mappings) are
append-only; readers project the newest row per paper with
:func:`pick_latest`.  Scores are one row per paper, overwritten.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, TypeVar

from paperpulse.models.enrichment import (
    BenchmarkMapping,
    ClaimedSota,
    EnrichmentRecord,
    LeaderboardLink,
    ScoreComponents,
    ScoreRecord,
    StructuredExtraction,
)
from paperpulse.models.paper import Paper
from paperpulse.models.save import SavedPaper
from paperpulse.models.watchlist import Watchlist
from paperpulse.utils.dates import format_timestamp, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAPER_COLUMNS = (
    "id, arxiv_id, latest_version, title, abstract, authors, categories, "
    "primary_category, published_at, updated_at, abs_url, pdf_url, created_at"
)


def pick_latest(
    rows: Iterable[T],
    key: Callable[[T], str] = lambda r: r.paper_id,  # type: ignore[attr-defined]
) -> dict[str, T]:
    """Latest-wins projection: newest row per paper.

    Rows are compared by ``(created_at, id)`` so rows written within the
    same millisecond still resolve to the last insert.
    """
    latest: dict[str, T] = {}
    for row in rows:
        k = key(row)
        current = latest.get(k)
        if current is None or _version_key(row) > _version_key(current):
            latest[k] = row
    return latest


def _version_key(row: Any) -> tuple[str, int]:
    return (row.created_at or "", row.id or 0)


def _now() -> str:
    return format_timestamp(utc_now())  # type: ignore[return-value]


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _loads(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError:
        return default


def _placeholders(values: list[Any]) -> str:
    return ",".join(["?"] * len(values))


class PaperRepository:
    """Repository for papers and their derived records using SQLite."""

    def __init__(self, db_path: Path):
        """Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._init_db()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS papers (
                    id TEXT PRIMARY KEY,
                    arxiv_id TEXT NOT NULL UNIQUE,
                    latest_version INTEGER NOT NULL DEFAULT 1,
                    title TEXT NOT NULL,
                    abstract TEXT NOT NULL DEFAULT '',
                    authors TEXT NOT NULL DEFAULT '[]',
                    categories TEXT NOT NULL DEFAULT '[]',
                    primary_category TEXT,
                    published_at TEXT NOT NULL,
                    updated_at TEXT,
                    abs_url TEXT,
                    pdf_url TEXT,
                    created_at TEXT NOT NULL
                );
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_papers_feed ON papers(published_at DESC, id DESC);"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_papers_primary ON papers(primary_category);"
            )
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS paper_enrich (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
                    code_urls TEXT NOT NULL DEFAULT '[]',
                    primary_repo TEXT,
                    repo_stars INTEGER,
                    repo_license TEXT,
                    has_weights INTEGER,
                    readme_excerpt TEXT,
                    readme_sha TEXT,
                    created_at TEXT NOT NULL
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS paper_structured (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
                    method TEXT,
                    tasks TEXT NOT NULL DEFAULT '[]',
                    datasets TEXT NOT NULL DEFAULT '[]',
                    benchmarks TEXT NOT NULL DEFAULT '[]',
                    claimed_sota TEXT NOT NULL DEFAULT '[]',
                    code_urls TEXT NOT NULL DEFAULT '[]',
                    params REAL,
                    tokens REAL,
                    compute TEXT,
                    created_at TEXT NOT NULL
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS benchmark_links (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
                    fingerprint TEXT NOT NULL,
                    found INTEGER NOT NULL,
                    search_url TEXT NOT NULL,
                    paper_url TEXT,
                    repo_url TEXT,
                    repo_stars INTEGER,
                    leaderboard_links TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    UNIQUE(paper_id, fingerprint)
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS paper_scores (
                    paper_id TEXT PRIMARY KEY REFERENCES papers(id) ON DELETE CASCADE,
                    global_score REAL NOT NULL,
                    recency REAL NOT NULL,
                    code REAL NOT NULL,
                    stars REAL NOT NULL,
                    watchlist REAL NOT NULL,
                    updated_at TEXT NOT NULL
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS watchlists (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    terms TEXT NOT NULL DEFAULT '[]',
                    categories TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                );
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_saves (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(user_id, paper_id)
                );
            """)
            for table in ("paper_enrich", "paper_structured", "benchmark_links"):
                cursor.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_paper ON {table}(paper_id, created_at);"
                )
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_watchlists_user ON watchlists(user_id);")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_user_saves_user ON user_saves(user_id);")
            conn.commit()

    # ------------------------------------------------------------------
    # Papers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_paper(row: sqlite3.Row) -> Paper:
        return Paper(
            arxiv_id=row["arxiv_id"],
            title=row["title"],
            abstract=row["abstract"],
            authors=_loads(row["authors"], []),
            categories=_loads(row["categories"], []),
            primary_category=row["primary_category"],
            published_at=row["published_at"],
            updated_at=row["updated_at"],
            abs_url=row["abs_url"],
            pdf_url=row["pdf_url"],
            latest_version=row["latest_version"],
            id=row["id"],
            created_at=row["created_at"],
        )

    def upsert_paper(self, paper: Paper) -> str:
        """Insert a paper, or refresh it when a newer version arrives.

        Papers without a publish date are stamped with the ingestion time so
        that keyset pagination always has a key.  ``paper.id`` and
        ``paper.created_at`` are filled in from the stored row.

        Args:
            paper: Paper to store (``arxiv_id`` must be the base id)

        Returns:
            ``"inserted"``, ``"updated"`` or ``"unchanged"``
        """
        now = _now()
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, latest_version, created_at FROM papers WHERE arxiv_id = ?",
                (paper.arxiv_id,),
            )
            existing = cursor.fetchone()

            if existing is None:
                paper.id = paper.id or uuid.uuid4().hex
                paper.created_at = now
                paper.published_at = paper.published_at or now
                cursor.execute(
                    f"""
                    INSERT INTO papers ({PAPER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        paper.id,
                        paper.arxiv_id,
                        paper.latest_version,
                        paper.title,
                        paper.abstract,
                        _dumps(paper.authors),
                        _dumps(paper.categories),
                        paper.primary_category,
                        paper.published_at,
                        paper.updated_at,
                        paper.abs_url,
                        paper.pdf_url,
                        paper.created_at,
                    ),
                )
                conn.commit()
                return "inserted"

            paper.id = existing["id"]
            paper.created_at = existing["created_at"]
            if paper.latest_version <= existing["latest_version"]:
                return "unchanged"

            cursor.execute(
                """
                UPDATE papers
                SET latest_version = ?, title = ?, abstract = ?, authors = ?,
                    categories = ?, primary_category = ?, updated_at = ?,
                    abs_url = COALESCE(?, abs_url), pdf_url = COALESCE(?, pdf_url),
                    published_at = COALESCE(?, published_at)
                WHERE id = ?
                """,
                (
                    paper.latest_version,
                    paper.title,
                    paper.abstract,
                    _dumps(paper.authors),
                    _dumps(paper.categories),
                    paper.primary_category,
                    paper.updated_at,
                    paper.abs_url,
                    paper.pdf_url,
                    paper.published_at,
                    paper.id,
                ),
            )
            conn.commit()
            return "updated"

    def find_by_arxiv_id(self, arxiv_id: str) -> Optional[Paper]:
        """Find a single paper by its base arXiv id.

        Args:
            arxiv_id: Version-stripped arXiv id

        Returns:
            Paper object if found, None otherwise
        """
        papers = self.find_by_arxiv_ids([arxiv_id])
        return papers[0] if papers else None

    def find_by_arxiv_ids(self, arxiv_ids: list[str]) -> list[Paper]:
        """Find papers by base ids, newest published first."""
        if not arxiv_ids:
            return []
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {PAPER_COLUMNS} FROM papers
                WHERE arxiv_id IN ({_placeholders(arxiv_ids)})
                ORDER BY published_at DESC, id DESC
                """,
                arxiv_ids,
            )
            return [self._row_to_paper(row) for row in cursor.fetchall()]

    def find_recent(self, limit: int = 30) -> list[Paper]:
        """Most recently published papers.

        Args:
            limit: Maximum number of papers to return

        Returns:
            List of Paper objects, newest first
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {PAPER_COLUMNS} FROM papers
                ORDER BY published_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
            return [self._row_to_paper(row) for row in cursor.fetchall()]

    def find_feed_rows(
        self,
        limit: int,
        after: Optional[tuple[str, str]] = None,
        since: Optional[str] = None,
        categories: Optional[list[str]] = None,
    ) -> list[Paper]:
        """One keyset batch in feed order (``published_at DESC, id DESC``).

        Args:
            limit: Batch size
            after: ``(published_at, id)`` key; only rows strictly after it
                in feed order are returned
            since: Lower bound (inclusive) on ``published_at``
            categories: Keep papers whose primary category is in this list

        Returns:
            List of Paper objects
        """
        clauses: list[str] = []
        params: list[Any] = []
        if after is not None:
            clauses.append("(published_at < ? OR (published_at = ? AND id < ?))")
            params.extend([after[0], after[0], after[1]])
        if since is not None:
            clauses.append("published_at >= ?")
            params.append(since)
        if categories:
            clauses.append(f"primary_category IN ({_placeholders(categories)})")
            params.extend(categories)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {PAPER_COLUMNS} FROM papers
                {where_sql}
                ORDER BY published_at DESC, id DESC
                LIMIT ?
                """,
                (*params, limit),
            )
            return [self._row_to_paper(row) for row in cursor.fetchall()]

    def count_papers(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) AS cnt FROM papers").fetchone()["cnt"]

    def delete_paper(self, paper_id: str) -> bool:
        """Delete a paper; its derived rows go with it."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM papers WHERE id = ?", (paper_id,))
            conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Derived records (append-only)
    # ------------------------------------------------------------------

    def insert_enrichment(self, record: EnrichmentRecord) -> EnrichmentRecord:
        """Append an enrichment row."""
        record.created_at = _now()
        has_weights = None if record.has_weights is None else int(record.has_weights)
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO paper_enrich
                (paper_id, code_urls, primary_repo, repo_stars, repo_license,
                 has_weights, readme_excerpt, readme_sha, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.paper_id,
                    _dumps(record.code_urls),
                    record.primary_repo,
                    record.repo_stars,
                    record.repo_license,
                    has_weights,
                    record.readme_excerpt,
                    record.readme_sha,
                    record.created_at,
                ),
            )
            conn.commit()
            record.id = cursor.lastrowid
        return record

    def insert_structured(self, record: StructuredExtraction) -> StructuredExtraction:
        """Append a structured-extraction row."""
        record.created_at = _now()
        claims = [
            {"benchmark": c.benchmark, "metric": c.metric, "value": c.value, "split": c.split}
            for c in record.claimed_sota
        ]
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO paper_structured
                (paper_id, method, tasks, datasets, benchmarks, claimed_sota,
                 code_urls, params, tokens, compute, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.paper_id,
                    record.method,
                    _dumps(record.tasks),
                    _dumps(record.datasets),
                    _dumps(record.benchmarks),
                    _dumps(claims),
                    _dumps(record.code_urls),
                    record.params,
                    record.tokens,
                    record.compute,
                    record.created_at,
                ),
            )
            conn.commit()
            record.id = cursor.lastrowid
        return record

    def insert_benchmark_mapping(self, mapping: BenchmarkMapping) -> bool:
        """Append a mapping unless an identical one is already stored.

        Returns:
            True if a row was written, False on a uniqueness conflict
        """
        mapping.created_at = _now()
        links = [{"label": link.label, "url": link.url} for link in mapping.leaderboard_links]
        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO benchmark_links
                    (paper_id, fingerprint, found, search_url, paper_url, repo_url,
                     repo_stars, leaderboard_links, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        mapping.paper_id,
                        mapping.fingerprint,
                        int(mapping.found),
                        mapping.search_url,
                        mapping.paper_url,
                        mapping.repo_url,
                        mapping.repo_stars,
                        _dumps(links),
                        mapping.created_at,
                    ),
                )
            except sqlite3.IntegrityError:
                logger.debug("Benchmark mapping for %s already stored", mapping.paper_id)
                return False
            conn.commit()
            mapping.id = cursor.lastrowid
        return True

    @staticmethod
    def _row_to_enrichment(row: sqlite3.Row) -> EnrichmentRecord:
        return EnrichmentRecord(
            paper_id=row["paper_id"],
            code_urls=_loads(row["code_urls"], []),
            primary_repo=row["primary_repo"],
            repo_stars=row["repo_stars"],
            repo_license=row["repo_license"],
            has_weights=None if row["has_weights"] is None else bool(row["has_weights"]),
            readme_excerpt=row["readme_excerpt"],
            readme_sha=row["readme_sha"],
            id=row["id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_structured(row: sqlite3.Row) -> StructuredExtraction:
        return StructuredExtraction(
            paper_id=row["paper_id"],
            method=row["method"],
            tasks=_loads(row["tasks"], []),
            datasets=_loads(row["datasets"], []),
            benchmarks=_loads(row["benchmarks"], []),
            claimed_sota=[ClaimedSota(**c) for c in _loads(row["claimed_sota"], [])],
            code_urls=_loads(row["code_urls"], []),
            params=row["params"],
            tokens=row["tokens"],
            compute=row["compute"],
            id=row["id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_mapping(row: sqlite3.Row) -> BenchmarkMapping:
        return BenchmarkMapping(
            paper_id=row["paper_id"],
            found=bool(row["found"]),
            search_url=row["search_url"],
            paper_url=row["paper_url"],
            repo_url=row["repo_url"],
            repo_stars=row["repo_stars"],
            leaderboard_links=[
                LeaderboardLink(**link) for link in _loads(row["leaderboard_links"], [])
            ],
            id=row["id"],
            created_at=row["created_at"],
        )

    def _history(self, table: str, paper_ids: list[str]) -> list[sqlite3.Row]:
        if not paper_ids:
            return []
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT * FROM {table}
                WHERE paper_id IN ({_placeholders(paper_ids)})
                ORDER BY created_at ASC, id ASC
                """,
                paper_ids,
            )
            return cursor.fetchall()

    def enrichment_history(self, paper_id: str) -> list[EnrichmentRecord]:
        """All enrichment rows of a paper, oldest first."""
        return [self._row_to_enrichment(r) for r in self._history("paper_enrich", [paper_id])]

    def structured_history(self, paper_id: str) -> list[StructuredExtraction]:
        """All structured-extraction rows of a paper, oldest first."""
        return [self._row_to_structured(r) for r in self._history("paper_structured", [paper_id])]

    def mapping_history(self, paper_id: str) -> list[BenchmarkMapping]:
        """All benchmark mappings of a paper, oldest first."""
        return [self._row_to_mapping(r) for r in self._history("benchmark_links", [paper_id])]

    def latest_enrichments(self, paper_ids: list[str]) -> dict[str, EnrichmentRecord]:
        """Latest enrichment row per paper."""
        rows = self._history("paper_enrich", paper_ids)
        return pick_latest(self._row_to_enrichment(r) for r in rows)

    def latest_structured(self, paper_ids: list[str]) -> dict[str, StructuredExtraction]:
        """Latest structured-extraction row per paper."""
        rows = self._history("paper_structured", paper_ids)
        return pick_latest(self._row_to_structured(r) for r in rows)

    def latest_mappings(self, paper_ids: list[str]) -> dict[str, BenchmarkMapping]:
        """Latest benchmark mapping per paper."""
        rows = self._history("benchmark_links", paper_ids)
        return pick_latest(self._row_to_mapping(r) for r in rows)

    def latest_enrichment_times(self, paper_ids: list[str]) -> dict[str, str]:
        """Creation time of the newest enrichment row per paper."""
        if not paper_ids:
            return {}
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT paper_id, MAX(created_at) AS last_at FROM paper_enrich
                WHERE paper_id IN ({_placeholders(paper_ids)})
                GROUP BY paper_id
                """,
                paper_ids,
            )
            return {row["paper_id"]: row["last_at"] for row in cursor.fetchall()}

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def upsert_score(self, record: ScoreRecord) -> None:
        """Insert or overwrite the stored score of a paper."""
        record.updated_at = record.updated_at or _now()
        c = record.components
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO paper_scores
                (paper_id, global_score, recency, code, stars, watchlist, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(paper_id) DO UPDATE SET
                    global_score = excluded.global_score,
                    recency = excluded.recency,
                    code = excluded.code,
                    stars = excluded.stars,
                    watchlist = excluded.watchlist,
                    updated_at = excluded.updated_at
                """,
                (
                    record.paper_id,
                    record.global_score,
                    c.recency,
                    c.code,
                    c.stars,
                    c.watchlist,
                    record.updated_at,
                ),
            )
            conn.commit()

    def scores_for(self, paper_ids: list[str]) -> dict[str, ScoreRecord]:
        """Stored scores keyed by paper id (papers never scored are absent)."""
        if not paper_ids:
            return {}
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT paper_id, global_score, recency, code, stars, watchlist, updated_at
                FROM paper_scores
                WHERE paper_id IN ({_placeholders(paper_ids)})
                """,
                paper_ids,
            )
            rows = cursor.fetchall()
        return {
            row["paper_id"]: ScoreRecord(
                paper_id=row["paper_id"],
                global_score=row["global_score"],
                components=ScoreComponents(
                    recency=row["recency"],
                    code=row["code"],
                    stars=row["stars"],
                    watchlist=row["watchlist"],
                ),
                updated_at=row["updated_at"],
            )
            for row in rows
        }

    # ------------------------------------------------------------------
    # Watchlists
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_watchlist(row: sqlite3.Row) -> Watchlist:
        return Watchlist(
            type=row["type"],
            name=row["name"],
            terms=_loads(row["terms"], []),
            categories=_loads(row["categories"], []),
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    def create_watchlist(self, user_id: str, watchlist: Watchlist) -> Watchlist:
        """Store a new watchlist for a user."""
        watchlist.id = uuid.uuid4().hex
        watchlist.user_id = user_id
        watchlist.created_at = _now()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO watchlists (id, user_id, type, name, terms, categories, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    watchlist.id,
                    user_id,
                    watchlist.type,
                    watchlist.name,
                    _dumps(watchlist.terms),
                    _dumps(watchlist.categories),
                    watchlist.created_at,
                ),
            )
            conn.commit()
        return watchlist

    def list_watchlists(self, user_id: str) -> list[Watchlist]:
        """Watchlists of a user, oldest first."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, user_id, type, name, terms, categories, created_at
                FROM watchlists WHERE user_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (user_id,),
            )
            return [self._row_to_watchlist(row) for row in cursor.fetchall()]

    def get_watchlist(self, user_id: str, watchlist_id: str) -> Optional[Watchlist]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, user_id, type, name, terms, categories, created_at
                FROM watchlists WHERE id = ? AND user_id = ?
                """,
                (watchlist_id, user_id),
            )
            row = cursor.fetchone()
        return self._row_to_watchlist(row) if row else None

    def update_watchlist(self, watchlist: Watchlist) -> bool:
        """Overwrite type, name, terms and categories of an owned watchlist."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE watchlists SET type = ?, name = ?, terms = ?, categories = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    watchlist.type,
                    watchlist.name,
                    _dumps(watchlist.terms),
                    _dumps(watchlist.categories),
                    watchlist.id,
                    watchlist.user_id,
                ),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_watchlist(self, user_id: str, watchlist_id: str) -> bool:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM watchlists WHERE id = ? AND user_id = ?",
                (watchlist_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reading list
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_save(row: sqlite3.Row) -> SavedPaper:
        return SavedPaper(
            paper_id=row["paper_id"],
            status=row["status"],
            arxiv_id=row["arxiv_id"],
            title=row["title"],
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    def list_saves(
        self,
        user_id: str,
        status: Optional[str] = None,
        paper_id: Optional[str] = None,
    ) -> list[SavedPaper]:
        """Reading-list entries of a user, newest first."""
        clauses = ["s.user_id = ?"]
        params: list[Any] = [user_id]
        if status:
            clauses.append("s.status = ?")
            params.append(status)
        if paper_id:
            clauses.append("s.paper_id = ?")
            params.append(paper_id)
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT s.id, s.user_id, s.paper_id, s.status, s.created_at,
                       p.arxiv_id, p.title
                FROM user_saves s JOIN papers p ON p.id = s.paper_id
                WHERE {" AND ".join(clauses)}
                ORDER BY s.created_at DESC, s.id DESC
                """,
                params,
            )
            return [self._row_to_save(row) for row in cursor.fetchall()]

    def get_save(self, user_id: str, paper_id: str) -> Optional[SavedPaper]:
        saves = self.list_saves(user_id, paper_id=paper_id)
        return saves[0] if saves else None

    def upsert_save(self, user_id: str, paper_id: str, status: str) -> SavedPaper:
        """Add a paper to a user's reading list, or change its status."""
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO user_saves (id, user_id, paper_id, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, paper_id) DO UPDATE SET status = excluded.status
                """,
                (uuid.uuid4().hex, user_id, paper_id, status, _now()),
            )
            conn.commit()
        return self.get_save(user_id, paper_id)  # type: ignore[return-value]

    def delete_save(
        self,
        user_id: str,
        save_id: Optional[str] = None,
        paper_id: Optional[str] = None,
    ) -> bool:
        """Remove one entry, addressed by save id or by paper id."""
        if save_id:
            sql, key = "DELETE FROM user_saves WHERE user_id = ? AND id = ?", save_id
        elif paper_id:
            sql, key = "DELETE FROM user_saves WHERE user_id = ? AND paper_id = ?", paper_id
        else:
            return False
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, (user_id, key))
            conn.commit()
            return cursor.rowcount > 0

    def delete_user_data(self, user_id: str) -> dict[str, int]:
        """Delete everything owned by a user.

        Returns:
            Removed row counts, ``{"watchlists": n, "saves": m}``
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM watchlists WHERE user_id = ?", (user_id,))
            watchlists = cursor.rowcount
            cursor.execute("DELETE FROM user_saves WHERE user_id = ?", (user_id,))
            saves = cursor.rowcount
            conn.commit()
        return {"watchlists": watchlists, "saves": saves}
