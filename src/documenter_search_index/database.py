"""SQLite FTS5 database operations for documentation search index entries."""

import re
import sqlite3
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path

from documenter_search_index.models import DocumentationEntry, SearchIndex, SearchResult
from documenter_search_index.parser import searchable_text


class EntryDatabase:
    """Manages the SQLite FTS5 database of search index entries."""

    def __init__(self, db_path: Path) -> None:
        """Initialise database with the given path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._initialise_schema()

    @staticmethod
    def _sanitise_query(query: str) -> str:
        """Sanitise user query for FTS5 MATCH clause.

        Anything outside FTS5 barewords (letters, digits, underscore) has
        query syntax meaning, as do the boolean keywords. Such queries are
        matched as a literal phrase instead.

        Args:
            query: Raw user query string.

        Returns:
            Sanitised query string safe for FTS5 MATCH.
        """
        query = re.sub(r"[\x00-\x1f\x7f]", " ", query)
        fts5_operators = re.compile(r"\b(AND|OR|NOT|NEAR)\b", re.IGNORECASE)

        if re.search(r"[^\w\s]", query) or fts5_operators.search(query):
            query = query.replace('"', '""')
            return f'"{query}"'

        return query

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Yields:
            SQLite connection with Row factory enabled.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialise_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS builds (
                    version TEXT PRIMARY KEY,
                    base_url TEXT,
                    source TEXT,
                    binding TEXT NOT NULL DEFAULT 'documenterSearchIndex',
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    version TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    location TEXT NOT NULL,
                    page TEXT NOT NULL,
                    title TEXT NOT NULL,
                    text TEXT NOT NULL,
                    category TEXT NOT NULL,
                    content TEXT NOT NULL,
                    UNIQUE (version, position)
                );

                CREATE VIRTUAL TABLE IF NOT EXISTS entries_fts USING fts5(
                    title,
                    page,
                    content,
                    content='entries',
                    content_rowid='id',
                    tokenize='porter unicode61'
                );

                CREATE TRIGGER IF NOT EXISTS entries_ai AFTER INSERT ON entries BEGIN
                    INSERT INTO entries_fts(rowid, title, page, content)
                    VALUES (new.id, new.title, new.page, new.content);
                END;

                CREATE TRIGGER IF NOT EXISTS entries_ad AFTER DELETE ON entries BEGIN
                    INSERT INTO entries_fts(entries_fts, rowid, title, page, content)
                    VALUES ('delete', old.id, old.title, old.page, old.content);
                END;

                CREATE TRIGGER IF NOT EXISTS entries_au AFTER UPDATE ON entries BEGIN
                    INSERT INTO entries_fts(entries_fts, rowid, title, page, content)
                    VALUES ('delete', old.id, old.title, old.page, old.content);
                    INSERT INTO entries_fts(rowid, title, page, content)
                    VALUES (new.id, new.title, new.page, new.content);
                END;

                CREATE INDEX IF NOT EXISTS idx_entries_category ON entries(category);
            """)
            conn.commit()

    def replace_build(
        self,
        version: str,
        entries: Iterable[DocumentationEntry],
        base_url: str | None = None,
        source: str | None = None,
        binding: str = SearchIndex.binding,
    ) -> int:
        """Replace every entry of a build version.

        Args:
            version: Build version the entries belong to.
            entries: Entries in site navigation order.
            base_url: URL of the build root, used for result links.
            source: Where the build was loaded from.
            binding: JavaScript variable the index file assigns, kept for export.

        Returns:
            Number of entries stored.
        """
        rows = [
            (
                version,
                position,
                entry.location,
                entry.page,
                entry.title,
                entry.text,
                entry.category,
                searchable_text(entry.text),
            )
            for position, entry in enumerate(entries)
        ]
        with self._get_connection() as conn:
            conn.execute("DELETE FROM entries WHERE version = ?", (version,))
            conn.executemany(
                """
                INSERT INTO entries (version, position, location, page, title, text, category, content)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.execute(
                """
                INSERT INTO builds (version, base_url, source, binding)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(version) DO UPDATE SET
                    base_url = excluded.base_url,
                    source = excluded.source,
                    binding = excluded.binding,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (version, base_url, source, binding),
            )
            conn.commit()
        return len(rows)

    def search(
        self,
        query: str,
        version: str | None = None,
        category: str | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        """Search entries using FTS5.

        Args:
            query: Search query string.
            version: Optional build version filter.
            category: Optional category filter.
            limit: Maximum number of results.

        Returns:
            List of SearchResult instances ordered by relevance.

        Raises:
            ValueError: If limit is less than 1.
        """
        if limit < 1:
            msg = f"Search limit must be at least 1, got {limit}"
            raise ValueError(msg)

        sanitised_query = self._sanitise_query(query)
        if not sanitised_query.strip():
            return []

        with self._get_connection() as conn:
            sql = """
                SELECT
                    e.version,
                    e.location,
                    e.title,
                    e.page,
                    e.text,
                    e.category,
                    b.base_url,
                    snippet(entries_fts, 2, '<mark>', '</mark>', '...', 64) as snippet,
                    bm25(entries_fts, 5.0, 2.0, 1.0) as score
                FROM entries_fts
                JOIN entries e ON entries_fts.rowid = e.id
                LEFT JOIN builds b ON b.version = e.version
                WHERE entries_fts MATCH ?
            """
            params: list[str | int] = [sanitised_query]

            if version:
                sql += " AND e.version = ?"
                params.append(version)
            if category:
                sql += " AND e.category = ?"
                params.append(category)

            sql += " ORDER BY score, e.position LIMIT ?"
            params.append(limit)

            cursor = conn.execute(sql, params)
            results = []
            for row in cursor.fetchall():
                entry = self._row_to_entry(row)
                results.append(
                    SearchResult(
                        version=row["version"],
                        location=row["location"],
                        title=row["title"],
                        page=row["page"],
                        category=row["category"],
                        url=entry.url(row["base_url"]) if row["base_url"] else entry.location,
                        snippet=row["snippet"],
                        score=abs(row["score"]),  # BM25 returns negative scores
                    )
                )
            return results

    def get_entries(self, version: str) -> list[DocumentationEntry]:
        """Retrieve all entries of a build in their original order.

        Args:
            version: Build version.

        Returns:
            Entries in site navigation order, empty if the build is unknown.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT location, page, title, text, category FROM entries
                WHERE version = ? ORDER BY position
                """,
                (version,),
            )
            return [self._row_to_entry(row) for row in cursor.fetchall()]

    def get_index(self, version: str) -> SearchIndex | None:
        """Rebuild the search index of a stored build.

        Args:
            version: Build version.

        Returns:
            SearchIndex with the build's entries and binding, or None if the build is unknown.
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT binding FROM builds WHERE version = ?", (version,)).fetchone()
        if row is None:
            return None
        return SearchIndex(entries=tuple(self.get_entries(version)), binding=row["binding"])

    def get_entry(self, version: str, location: str) -> DocumentationEntry | None:
        """Retrieve the first entry of a build at a location.

        Args:
            version: Build version.
            location: Entry location (URL fragment).

        Returns:
            DocumentationEntry instance or None if not found.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT location, page, title, text, category FROM entries
                WHERE version = ? AND location = ? ORDER BY position LIMIT 1
                """,
                (version, location),
            )
            row = cursor.fetchone()
            if row:
                return self._row_to_entry(row)
            return None

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> DocumentationEntry:
        """Build an entry from a row of the entries table.

        Args:
            row: Row with the entry columns.

        Returns:
            DocumentationEntry instance.
        """
        return DocumentationEntry(
            location=row["location"],
            page=row["page"],
            title=row["title"],
            text=row["text"],
            category=row["category"],
        )

    def get_base_url(self, version: str) -> str | None:
        """Return the base URL recorded for a build, if any."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT base_url FROM builds WHERE version = ?", (version,)).fetchone()
            return row["base_url"] if row else None

    def list_versions(self) -> list[str]:
        """Return the stored build versions, sorted by name."""
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT version FROM builds ORDER BY version")
            return [row["version"] for row in cursor.fetchall()]

    def delete_build(self, version: str) -> None:
        """Remove a build and all of its entries.

        Args:
            version: Build version to remove.
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM entries WHERE version = ?", (version,))
            conn.execute("DELETE FROM builds WHERE version = ?", (version,))
            conn.commit()

    def clear(self) -> None:
        """Clear all entries and builds from the database."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM entries")
            conn.execute("DELETE FROM builds")
            conn.commit()

    def get_entry_count(self, version: str | None = None) -> int:
        """Return the number of indexed entries.

        Args:
            version: Optional build version to count.

        Returns:
            Count of entries in the database.
        """
        with self._get_connection() as conn:
            if version is None:
                cursor = conn.execute("SELECT COUNT(*) FROM entries")
            else:
                cursor = conn.execute("SELECT COUNT(*) FROM entries WHERE version = ?", (version,))
            result = cursor.fetchone()
            return int(result[0]) if result else 0
