"""SQLite archive store: level metadata and file records.

WHY: The archive database is shared by the conversion pipeline (which
reads source chart records and writes converted ones) and the catalog
API (which reads everything). One small class keeps the SQL in one place
and lets tests point both at a throwaway file.

HOW: Two tables mirror the archive layout:
  files  — one row per (level name, file type): hash and public URL
  levels — one row per level: title, artists, author, rating, ordering key
Every method is a single statement, except replace_file which deletes and
inserts inside one transaction.

RULES:
- File types: LevelData, NewLevelData, LevelCover, LevelBgm, BackgroundImage
- replace_file is atomic: readers never see zero or two records for a name/type
- The connection is opened with check_same_thread=False so the catalog
  API's worker threads can share it
- Concurrent pipeline runs against one database are not supported
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

SOURCE_CHART_TYPE = "LevelData"
CONVERTED_CHART_TYPE = "NewLevelData"
COVER_TYPE = "LevelCover"
BGM_TYPE = "LevelBgm"
BACKGROUND_TYPE = "BackgroundImage"

_IN_CHUNK = 500

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS files ("
    "i INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, type TEXT, hash TEXT, url TEXT)",
    "CREATE TABLE IF NOT EXISTS levels ("
    "i INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, title TEXT, artists TEXT, "
    "author TEXT, description TEXT, rating INTEGER, index_ INTEGER)",
)


@dataclass
class FileRecord:
    name: str
    type: str
    hash: str
    url: str


@dataclass
class LevelRecord:
    name: str
    title: str
    artists: str
    author: str
    description: str
    rating: int
    index_: int = 0


def _file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(name=row["name"], type=row["type"], hash=row["hash"], url=row["url"])


def _level(row: sqlite3.Row) -> LevelRecord:
    return LevelRecord(
        name=row["name"],
        title=row["title"],
        artists=row["artists"],
        author=row["author"],
        description=row["description"],
        rating=row["rating"],
        index_=row["index_"],
    )


class ArchiveStore:
    """Thin wrapper over the archive SQLite database."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = str(path)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def __enter__(self) -> ArchiveStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    def close(self) -> None:
        self.conn.close()

    def ensure_schema(self) -> None:
        """Create the files and levels tables if they do not exist."""
        with self.conn:
            for statement in _SCHEMA:
                self.conn.execute(statement)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def list_files(self, file_type: str) -> List[FileRecord]:
        rows = self.conn.execute(
            "SELECT * FROM files WHERE type = ? ORDER BY i", (file_type,)
        ).fetchall()
        return [_file(r) for r in rows]

    def source_charts(self) -> List[FileRecord]:
        """All source chart records, in insertion order."""
        return self.list_files(SOURCE_CHART_TYPE)

    def converted_names(self) -> Set[str]:
        """Names of levels that already have a converted chart record."""
        return {r.name for r in self.list_files(CONVERTED_CHART_TYPE)}

    def has_file(self, name: str, file_type: str, file_hash: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM files WHERE name = ? AND type = ? AND hash = ?",
            (name, file_type, file_hash),
        ).fetchone()
        return row is not None

    def replace_file(self, name: str, file_type: str, file_hash: str, url: str) -> None:
        """Replace any record for (name, type) with a new one, atomically."""
        with self.conn:
            self.conn.execute(
                "DELETE FROM files WHERE name = ? AND type = ?", (name, file_type)
            )
            self.conn.execute(
                "INSERT INTO files (name, type, hash, url) VALUES (?, ?, ?, ?)",
                (name, file_type, file_hash, url),
            )

    def files_for(self, names: Iterable[str]) -> Dict[str, List[FileRecord]]:
        """All file records for the given level names, grouped by name."""
        names = list(names)
        grouped: Dict[str, List[FileRecord]] = {n: [] for n in names}
        # stay under SQLite's bound-parameter limit
        for start in range(0, len(names), _IN_CHUNK):
            chunk = names[start:start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self.conn.execute(
                f"SELECT * FROM files WHERE name IN ({placeholders}) ORDER BY i", chunk
            ).fetchall()
            for row in rows:
                grouped[row["name"]].append(_file(row))
        return grouped

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def insert_level(self, level: LevelRecord) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO levels (name, title, artists, author, description, rating, index_) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (level.name, level.title, level.artists, level.author,
                 level.description, level.rating, level.index_),
            )

    def get_level(self, name: str) -> Optional[LevelRecord]:
        row = self.conn.execute("SELECT * FROM levels WHERE name = ?", (name,)).fetchone()
        return _level(row) if row else None

    def all_levels(self) -> List[LevelRecord]:
        rows = self.conn.execute("SELECT * FROM levels ORDER BY i").fetchall()
        return [_level(r) for r in rows]

    def random_levels(self, limit: int) -> List[LevelRecord]:
        rows = self.conn.execute(
            "SELECT * FROM levels ORDER BY random() LIMIT ?", (limit,)
        ).fetchall()
        return [_level(r) for r in rows]

    def count_levels(self, keywords: Optional[List[str]] = None) -> int:
        where, params = _keyword_filter(keywords or [])
        row = self.conn.execute(f"SELECT COUNT(*) FROM levels {where}", params).fetchone()
        return row[0]

    def search_levels(
        self,
        keywords: Optional[List[str]] = None,
        page: int = 0,
        page_size: int = 20,
    ) -> List[LevelRecord]:
        """One page of levels matching every keyword, newest index_ first."""
        where, params = _keyword_filter(keywords or [])
        rows = self.conn.execute(
            f"SELECT * FROM levels {where} ORDER BY index_ DESC LIMIT ? OFFSET ?",
            [*params, page_size, page * page_size],
        ).fetchall()
        return [_level(r) for r in rows]


def _keyword_filter(keywords: List[str]) -> Tuple[str, List[str]]:
    """Build a WHERE clause AND-ing a case-insensitive match per keyword."""
    if not keywords:
        return "", []
    clause = (
        "(name LIKE ? OR lower(title) LIKE lower(?) "
        "OR lower(artists) LIKE lower(?) OR lower(author) LIKE lower(?))"
    )
    params: List[str] = []
    for keyword in keywords:
        params.extend(["%{}%".format(keyword)] * 4)
    return "WHERE " + " AND ".join([clause] * len(keywords)), params
