"""
tutorkb SQLite Store -- SQLite + FTS5 storage for the tutoring knowledge base.

All records live in a single SQLite database: four primary tables (concepts,
patterns, errors, commands) and two external-content FTS5 indexes over
concepts and patterns. Triggers mirror every insert, update and delete on a
primary table into its index inside the same statement, so the index can never
be observed out of step with its table.

One connection is shared by every caller and guarded by one lock; each public
method holds the lock for its whole duration.

Usage:
    store = KnowledgeStore.open_in_memory()
    store.store_concept(concept)
    store.get_concept("ownership-move-semantics")
"""

import json
import logging
import os
import sqlite3
import stat
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from tutorkb.models import CodeExample, Command, CommandFlag, Concept, ErrorExplanation, Pattern

logger = logging.getLogger("tutorkb.sqlite_store")

SCHEMA_VERSION = 1
MEMORY_PATH = ":memory:"
EXPORT_VERSION = "tutorkb-v1"


SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

-- Core concepts
CREATE TABLE IF NOT EXISTS concepts (
    pk INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT UNIQUE NOT NULL,
    topic TEXT NOT NULL,
    title TEXT NOT NULL,
    explanation TEXT NOT NULL,
    code_examples TEXT NOT NULL DEFAULT '[]',    -- JSON array of {title, code, explanation}
    common_mistakes TEXT NOT NULL DEFAULT '[]',  -- JSON array of strings
    related_concepts TEXT NOT NULL DEFAULT '[]', -- JSON array of concept ids
    tags TEXT NOT NULL DEFAULT '[]',             -- JSON array of strings
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_concepts_topic ON concepts(topic);

CREATE VIRTUAL TABLE IF NOT EXISTS concepts_fts USING fts5(
    topic, title, explanation, tags,
    content='concepts',
    content_rowid='pk'
);

CREATE TRIGGER IF NOT EXISTS concepts_ai AFTER INSERT ON concepts BEGIN
    INSERT INTO concepts_fts(rowid, topic, title, explanation, tags)
    VALUES (new.pk, new.topic, new.title, new.explanation, new.tags);
END;

CREATE TRIGGER IF NOT EXISTS concepts_ad AFTER DELETE ON concepts BEGIN
    INSERT INTO concepts_fts(concepts_fts, rowid, topic, title, explanation, tags)
    VALUES ('delete', old.pk, old.topic, old.title, old.explanation, old.tags);
END;

CREATE TRIGGER IF NOT EXISTS concepts_au AFTER UPDATE ON concepts BEGIN
    INSERT INTO concepts_fts(concepts_fts, rowid, topic, title, explanation, tags)
    VALUES ('delete', old.pk, old.topic, old.title, old.explanation, old.tags);
    INSERT INTO concepts_fts(rowid, topic, title, explanation, tags)
    VALUES (new.pk, new.topic, new.title, new.explanation, new.tags);
END;

-- Reusable code patterns
CREATE TABLE IF NOT EXISTS patterns (
    pk INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    template TEXT NOT NULL,
    when_to_use TEXT NOT NULL DEFAULT '',
    when_not_to_use TEXT NOT NULL DEFAULT '',
    examples TEXT NOT NULL DEFAULT '[]',         -- JSON array of {title, code, explanation}
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE VIRTUAL TABLE IF NOT EXISTS patterns_fts USING fts5(
    name, description, when_to_use,
    content='patterns',
    content_rowid='pk'
);

CREATE TRIGGER IF NOT EXISTS patterns_ai AFTER INSERT ON patterns BEGIN
    INSERT INTO patterns_fts(rowid, name, description, when_to_use)
    VALUES (new.pk, new.name, new.description, new.when_to_use);
END;

CREATE TRIGGER IF NOT EXISTS patterns_ad AFTER DELETE ON patterns BEGIN
    INSERT INTO patterns_fts(patterns_fts, rowid, name, description, when_to_use)
    VALUES ('delete', old.pk, old.name, old.description, old.when_to_use);
END;

CREATE TRIGGER IF NOT EXISTS patterns_au AFTER UPDATE ON patterns BEGIN
    INSERT INTO patterns_fts(patterns_fts, rowid, name, description, when_to_use)
    VALUES ('delete', old.pk, old.name, old.description, old.when_to_use);
    INSERT INTO patterns_fts(rowid, name, description, when_to_use)
    VALUES (new.pk, new.name, new.description, new.when_to_use);
END;

-- Compiler errors, keyed by error code
CREATE TABLE IF NOT EXISTS errors (
    error_code TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    explanation TEXT NOT NULL,
    example_bad TEXT NOT NULL DEFAULT '',
    example_good TEXT NOT NULL DEFAULT '',
    fix_strategies TEXT NOT NULL DEFAULT '[]',   -- JSON array of strings
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Toolchain commands (no uniqueness on content)
CREATE TABLE IF NOT EXISTS commands (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tool TEXT NOT NULL,
    command TEXT NOT NULL,
    description TEXT NOT NULL,
    flags TEXT NOT NULL DEFAULT '[]',            -- JSON array of {flag, description}
    examples TEXT NOT NULL DEFAULT '[]',         -- JSON array of strings
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_commands_tool ON commands(tool);
"""

# FTS index -> (primary table, docsize shadow table).
# Row counts are read from the docsize shadow table: a COUNT(*) on an
# external-content FTS5 table scans the content table, not the index.
_FTS_INDEXES = {
    "concepts_fts": ("concepts", "concepts_fts_docsize"),
    "patterns_fts": ("patterns", "patterns_fts_docsize"),
}

_CONCEPT_COLUMNS = "id, topic, title, explanation, code_examples, common_mistakes, related_concepts, tags"
_PATTERN_COLUMNS = "id, name, description, template, when_to_use, when_not_to_use, examples"
_ERROR_COLUMNS = "error_code, title, explanation, example_bad, example_good, fix_strategies"
_COMMAND_COLUMNS = "id, tool, command, description, flags, examples"

# ON CONFLICT DO UPDATE keeps the row (and its pk) so the update trigger
# fires; INSERT OR REPLACE would bypass the delete trigger.
_UPSERT_CONCEPT = """INSERT INTO concepts
   (id, topic, title, explanation, code_examples,
    common_mistakes, related_concepts, tags)
   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
   ON CONFLICT(id) DO UPDATE SET
       topic = excluded.topic,
       title = excluded.title,
       explanation = excluded.explanation,
       code_examples = excluded.code_examples,
       common_mistakes = excluded.common_mistakes,
       related_concepts = excluded.related_concepts,
       tags = excluded.tags,
       updated_at = CURRENT_TIMESTAMP"""

_UPSERT_PATTERN = """INSERT INTO patterns
   (id, name, description, template, when_to_use, when_not_to_use, examples)
   VALUES (?, ?, ?, ?, ?, ?, ?)
   ON CONFLICT(id) DO UPDATE SET
       name = excluded.name,
       description = excluded.description,
       template = excluded.template,
       when_to_use = excluded.when_to_use,
       when_not_to_use = excluded.when_not_to_use,
       examples = excluded.examples,
       updated_at = CURRENT_TIMESTAMP"""

_UPSERT_ERROR = """INSERT INTO errors
   (error_code, title, explanation, example_bad, example_good, fix_strategies)
   VALUES (?, ?, ?, ?, ?, ?)
   ON CONFLICT(error_code) DO UPDATE SET
       title = excluded.title,
       explanation = excluded.explanation,
       example_bad = excluded.example_bad,
       example_good = excluded.example_good,
       fix_strategies = excluded.fix_strategies,
       updated_at = CURRENT_TIMESTAMP"""

_INSERT_COMMAND = """INSERT INTO commands (tool, command, description, flags, examples)
   VALUES (?, ?, ?, ?, ?)"""


class BlobDecodeError(ValueError):
    """A JSON column read back from the store could not be decoded."""

    def __init__(self, table: str, key: Any, column: str, reason: str):
        self.table = table
        self.key = key
        self.column = column
        super().__init__(f"Corrupt {column} blob in {table} row {key!r}: {reason}")


def default_db_path() -> Path:
    """Resolve the database path from TUTORKB_DB / TUTORKB_HOME."""
    override = os.environ.get("TUTORKB_DB")
    if override:
        return Path(override)
    home = Path(os.environ.get("TUTORKB_HOME", str(Path.home() / ".tutorkb")))
    return home / "knowledge.db"


def secure_connect(db_path, **kwargs) -> sqlite3.Connection:
    """Create a SQLite connection with secure file permissions (0o600).

    Pre-creates the DB file with restricted permissions before connecting,
    and fixes existing files that have overly permissive permissions.
    """
    db_path_str = str(db_path)
    path_obj = Path(db_path_str)

    if not path_obj.exists():
        fd = os.open(db_path_str, os.O_CREAT | os.O_WRONLY, 0o600)
        os.close(fd)
    else:
        current_mode = path_obj.stat().st_mode
        if current_mode & (stat.S_IRWXG | stat.S_IRWXO):
            os.chmod(db_path_str, 0o600)

    return sqlite3.connect(db_path_str, **kwargs)


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _concept_params(concept: Concept) -> tuple:
    return (
        concept.id,
        concept.topic,
        concept.title,
        concept.explanation,
        _encode([asdict(ex) for ex in concept.code_examples]),
        _encode(concept.common_mistakes),
        _encode(concept.related_concepts),
        _encode(concept.tags),
    )


def _pattern_params(pattern: Pattern) -> tuple:
    return (
        pattern.id,
        pattern.name,
        pattern.description,
        pattern.template,
        pattern.when_to_use,
        pattern.when_not_to_use,
        _encode([asdict(ex) for ex in pattern.examples]),
    )


def _error_params(error: ErrorExplanation) -> tuple:
    return (
        error.error_code,
        error.title,
        error.explanation,
        error.example_bad,
        error.example_good,
        _encode(error.fix_strategies),
    )


def _command_params(command: Command) -> tuple:
    return (
        command.tool,
        command.command,
        command.description,
        _encode([asdict(f) for f in command.flags]),
        _encode(command.examples),
    )


def _decode_strings(raw: str, table: str, key: Any, column: str) -> List[str]:
    """Decode a JSON array of strings."""
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise BlobDecodeError(table, key, column, str(e)) from e
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise BlobDecodeError(table, key, column, "expected a JSON array of strings")
    return value


def _decode_records(raw: str, table: str, key: Any, column: str, factory: Callable[[dict], Any]) -> list:
    """Decode a JSON array of objects into records built by ``factory``."""
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise BlobDecodeError(table, key, column, str(e)) from e
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise BlobDecodeError(table, key, column, "expected a JSON array of objects")
    return [factory(v) for v in value]


class KnowledgeStore:
    """SQLite-backed knowledge store with FTS5 indexes over concepts and patterns."""

    def __init__(self, db_path: Union[str, Path, None] = None):
        if db_path is None:
            db_path = default_db_path()
        self.in_memory = str(db_path) == MEMORY_PATH
        self.db_path = Path(db_path) if not self.in_memory else None
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        self._lock = threading.Lock()
        self._conn = self._connect()
        self._init_schema()

    @classmethod
    def open(cls, location: Union[str, Path]) -> "KnowledgeStore":
        """Open (creating if needed) the store at ``location``."""
        return cls(location)

    @classmethod
    def open_in_memory(cls) -> "KnowledgeStore":
        """Open a private in-memory store; it lives as long as the object."""
        return cls(MEMORY_PATH)

    def _connect(self) -> sqlite3.Connection:
        """Create the shared SQLite connection."""
        if self.in_memory:
            conn = sqlite3.connect(MEMORY_PATH, check_same_thread=False)
        else:
            conn = secure_connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA busy_timeout=30000")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Create tables, indexes and sync triggers if they don't exist."""
        with self._lock:
            c = self._conn
            c.executescript(SCHEMA)

            row = c.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                c.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

            # Rebuild an index that disagrees with its table (e.g. rows written
            # before the index existed).
            for fts_table, (table, docsize) in _FTS_INDEXES.items():
                table_count = c.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                index_count = c.execute(f"SELECT COUNT(*) FROM {docsize}").fetchone()[0]
                if table_count != index_count:
                    c.execute(f"INSERT INTO {fts_table}({fts_table}) VALUES('rebuild')")
                    logger.info(
                        "Rebuilt %s: %d table rows, %d index rows before rebuild",
                        fts_table, table_count, index_count,
                    )
            c.commit()

    # ------------------------------------------------------------------
    # Write helpers
    # ------------------------------------------------------------------

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        """Execute one mutating statement and commit; roll back on failure.

        Caller must hold ``self._lock``.
        """
        try:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor
        except Exception:
            self._conn.rollback()
            raise

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------

    def store_concept(self, concept: Concept) -> None:
        """Insert or replace a concept by id."""
        params = _concept_params(concept)
        with self._lock:
            self._write(_UPSERT_CONCEPT, params)
        logger.debug("Stored concept %s", concept.id)

    def get_concept(self, concept_id: str) -> Optional[Concept]:
        """Get a concept by id, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_CONCEPT_COLUMNS} FROM concepts WHERE id = ?", (concept_id,)
            ).fetchone()
            return self._row_to_concept(row) if row else None

    def delete_concept(self, concept_id: str) -> bool:
        """Delete a concept; the delete trigger removes its index row."""
        with self._lock:
            cursor = self._write("DELETE FROM concepts WHERE id = ?", (concept_id,))
        return cursor.rowcount > 0

    def count_concepts(self) -> int:
        return self._count("concepts")

    def search_concepts(self, match_expr: str, limit: int = 10) -> List[Concept]:
        """Full-text search over topic/title/explanation/tags, best match first.

        ``match_expr`` is an FTS5 query expression (see tutorkb.query).
        """
        if not match_expr:
            return []
        with self._lock:
            rows = self._conn.execute(
                """SELECT c.id, c.topic, c.title, c.explanation, c.code_examples,
                          c.common_mistakes, c.related_concepts, c.tags
                   FROM concepts_fts f
                   JOIN concepts c ON c.pk = f.rowid
                   WHERE concepts_fts MATCH ?
                   ORDER BY f.rank
                   LIMIT ?""",
                (match_expr, limit),
            ).fetchall()
            return [self._row_to_concept(row) for row in rows]

    def concepts_by_topic(self, topic: str) -> List[Concept]:
        """All concepts whose topic equals ``topic`` exactly, in insertion order."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_CONCEPT_COLUMNS} FROM concepts WHERE topic = ? ORDER BY pk", (topic,)
            ).fetchall()
            return [self._row_to_concept(row) for row in rows]

    def list_topics(self) -> Dict[str, int]:
        """Topic -> concept count."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT topic, COUNT(*) AS n FROM concepts GROUP BY topic ORDER BY topic"
            ).fetchall()
        return {row["topic"]: row["n"] for row in rows}

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def store_pattern(self, pattern: Pattern) -> None:
        """Insert or replace a pattern by id."""
        params = _pattern_params(pattern)
        with self._lock:
            self._write(_UPSERT_PATTERN, params)
        logger.debug("Stored pattern %s", pattern.id)

    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        """Get a pattern by id, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_PATTERN_COLUMNS} FROM patterns WHERE id = ?", (pattern_id,)
            ).fetchone()
            return self._row_to_pattern(row) if row else None

    def delete_pattern(self, pattern_id: str) -> bool:
        """Delete a pattern; the delete trigger removes its index row."""
        with self._lock:
            cursor = self._write("DELETE FROM patterns WHERE id = ?", (pattern_id,))
        return cursor.rowcount > 0

    def count_patterns(self) -> int:
        return self._count("patterns")

    def search_patterns(self, match_expr: str, limit: int = 10) -> List[Pattern]:
        """Full-text search over name/description/when_to_use, best match first."""
        if not match_expr:
            return []
        with self._lock:
            rows = self._conn.execute(
                """SELECT p.id, p.name, p.description, p.template, p.when_to_use,
                          p.when_not_to_use, p.examples
                   FROM patterns_fts f
                   JOIN patterns p ON p.pk = f.rowid
                   WHERE patterns_fts MATCH ?
                   ORDER BY f.rank
                   LIMIT ?""",
                (match_expr, limit),
            ).fetchall()
            return [self._row_to_pattern(row) for row in rows]

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def store_error(self, error: ErrorExplanation) -> None:
        """Insert or replace an error explanation by error code."""
        params = _error_params(error)
        with self._lock:
            self._write(_UPSERT_ERROR, params)
        logger.debug("Stored error %s", error.error_code)

    def get_error(self, error_code: str) -> Optional[ErrorExplanation]:
        """Get an error explanation by code, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_ERROR_COLUMNS} FROM errors WHERE error_code = ?", (error_code,)
            ).fetchone()
            return self._row_to_error(row) if row else None

    def count_errors(self) -> int:
        return self._count("errors")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def store_command(self, command: Command) -> int:
        """Insert a command row and return its surrogate id. Never deduplicates."""
        params = _command_params(command)
        with self._lock:
            cursor = self._write(_INSERT_COMMAND, params)
        return cursor.lastrowid

    def get_command(self, command_id: int) -> Optional[Command]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COMMAND_COLUMNS} FROM commands WHERE id = ?", (command_id,)
            ).fetchone()
            return self._row_to_command(row) if row else None

    def count_commands(self) -> int:
        return self._count("commands")

    def search_commands(self, tool: str, keyword: str, limit: int = 20) -> List[Command]:
        """Commands of ``tool`` whose command or description contains ``keyword``.

        Substring matching uses SQLite LIKE, which is case-insensitive for
        ASCII letters. ``%`` and ``_`` in the keyword match literally.
        """
        escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        with self._lock:
            rows = self._conn.execute(
                f"""SELECT {_COMMAND_COLUMNS} FROM commands
                    WHERE tool = ?
                      AND (command LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\')
                    ORDER BY id
                    LIMIT ?""",
                (tool, pattern, pattern, limit),
            ).fetchall()
            return [self._row_to_command(row) for row in rows]

    def commands_for_tool(self, tool: str) -> List[Command]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COMMAND_COLUMNS} FROM commands WHERE tool = ? ORDER BY id", (tool,)
            ).fetchall()
            return [self._row_to_command(row) for row in rows]

    def list_tools(self) -> Dict[str, int]:
        """Tool -> command row count."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT tool, COUNT(*) AS n FROM commands GROUP BY tool ORDER BY tool"
            ).fetchall()
        return {row["tool"]: row["n"] for row in rows}

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def index_counts(self) -> Dict[str, int]:
        """Number of rows held by each FTS index."""
        with self._lock:
            return {
                fts_table: self._conn.execute(f"SELECT COUNT(*) FROM {docsize}").fetchone()[0]
                for fts_table, (_table, docsize) in _FTS_INDEXES.items()
            }

    def check_index(self) -> Dict[str, str]:
        """Run FTS5 integrity-check on both indexes.

        Returns index name -> "ok" or the error text reported by SQLite.
        """
        results: Dict[str, str] = {}
        with self._lock:
            for fts_table in _FTS_INDEXES:
                try:
                    self._conn.execute(f"INSERT INTO {fts_table}({fts_table}) VALUES('integrity-check')")
                    results[fts_table] = "ok"
                except sqlite3.DatabaseError as e:
                    results[fts_table] = str(e)
            self._conn.rollback()
        return results

    def rebuild_index(self) -> None:
        """Rebuild both FTS indexes from their primary tables."""
        with self._lock:
            for fts_table in _FTS_INDEXES:
                self._write(f"INSERT INTO {fts_table}({fts_table}) VALUES('rebuild')", ())
        logger.info("FTS5 indexes rebuilt")

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_to_file(self, filepath: Union[str, Path]) -> Dict[str, Any]:
        """Export every record to a JSON file."""
        with self._lock:
            concepts = [
                self._row_to_concept(r).to_dict()
                for r in self._conn.execute(f"SELECT {_CONCEPT_COLUMNS} FROM concepts ORDER BY pk")
            ]
            patterns = [
                self._row_to_pattern(r).to_dict()
                for r in self._conn.execute(f"SELECT {_PATTERN_COLUMNS} FROM patterns ORDER BY pk")
            ]
            errors = [
                self._row_to_error(r).to_dict()
                for r in self._conn.execute(f"SELECT {_ERROR_COLUMNS} FROM errors ORDER BY error_code")
            ]
            commands = [
                self._row_to_command(r).to_dict()
                for r in self._conn.execute(f"SELECT {_COMMAND_COLUMNS} FROM commands ORDER BY id")
            ]

        export_data = {
            "version": EXPORT_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "concepts": concepts,
            "patterns": patterns,
            "errors": errors,
            "commands": commands,
        }

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        filepath.write_text(json.dumps(export_data, indent=2, ensure_ascii=False), encoding="utf-8")

        return {
            "filepath": str(filepath),
            "concepts": len(concepts),
            "patterns": len(patterns),
            "errors": len(errors),
            "commands": len(commands),
            "exported_at": export_data["exported_at"],
        }

    def import_from_file(self, filepath: Union[str, Path], clear_existing: bool = True) -> Dict[str, Any]:
        """Import records from a file written by export_to_file.

        Every record is decoded before the store is touched, and the clear
        plus all writes run as one transaction: a bad file leaves the store
        exactly as it was.
        """
        data = json.loads(Path(filepath).read_text(encoding="utf-8"))
        if not isinstance(data, dict) or data.get("version") != EXPORT_VERSION:
            raise ValueError(f"Not a {EXPORT_VERSION} export: {filepath}")

        try:
            concepts = [_concept_params(Concept.from_dict(d)) for d in data.get("concepts", [])]
            patterns = [_pattern_params(Pattern.from_dict(d)) for d in data.get("patterns", [])]
            errors = [_error_params(ErrorExplanation.from_dict(d)) for d in data.get("errors", [])]
            commands = [_command_params(Command.from_dict(d)) for d in data.get("commands", [])]
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Not a valid {EXPORT_VERSION} export: {filepath}: {e!r}") from e

        with self._lock:
            try:
                if clear_existing:
                    for table in ("concepts", "patterns", "errors", "commands"):
                        self._conn.execute(f"DELETE FROM {table}")
                self._conn.executemany(_UPSERT_CONCEPT, concepts)
                self._conn.executemany(_UPSERT_PATTERN, patterns)
                self._conn.executemany(_UPSERT_ERROR, errors)
                self._conn.executemany(_INSERT_COMMAND, commands)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

        logger.debug(
            "Imported %d concepts, %d patterns, %d errors, %d commands from %s",
            len(concepts), len(patterns), len(errors), len(commands), filepath,
        )
        return {
            "filepath": str(filepath),
            "concepts": len(concepts),
            "patterns": len(patterns),
            "errors": len(errors),
            "commands": len(commands),
        }

    # ------------------------------------------------------------------
    # Stats / lifecycle
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        """Row counts plus location details."""
        result: Dict[str, Any] = {
            "concepts": self.count_concepts(),
            "patterns": self.count_patterns(),
            "errors": self.count_errors(),
            "commands": self.count_commands(),
            "database": MEMORY_PATH if self.in_memory else str(self.db_path),
            "schema_version": SCHEMA_VERSION,
        }
        if self.db_path is not None and self.db_path.exists():
            result["db_size_mb"] = self.db_path.stat().st_size / (1024 * 1024)
        return result

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug("Database close failed: %s", e)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _count(self, table: str) -> int:
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_concept(row: sqlite3.Row) -> Concept:
        key = row["id"]
        return Concept(
            id=key,
            topic=row["topic"],
            title=row["title"],
            explanation=row["explanation"],
            code_examples=_decode_records(
                row["code_examples"], "concepts", key, "code_examples", CodeExample.from_dict
            ),
            common_mistakes=_decode_strings(row["common_mistakes"], "concepts", key, "common_mistakes"),
            related_concepts=_decode_strings(row["related_concepts"], "concepts", key, "related_concepts"),
            tags=_decode_strings(row["tags"], "concepts", key, "tags"),
        )

    @staticmethod
    def _row_to_pattern(row: sqlite3.Row) -> Pattern:
        key = row["id"]
        return Pattern(
            id=key,
            name=row["name"],
            description=row["description"],
            template=row["template"],
            when_to_use=row["when_to_use"],
            when_not_to_use=row["when_not_to_use"],
            examples=_decode_records(row["examples"], "patterns", key, "examples", CodeExample.from_dict),
        )

    @staticmethod
    def _row_to_error(row: sqlite3.Row) -> ErrorExplanation:
        key = row["error_code"]
        return ErrorExplanation(
            error_code=key,
            title=row["title"],
            explanation=row["explanation"],
            example_bad=row["example_bad"],
            example_good=row["example_good"],
            fix_strategies=_decode_strings(row["fix_strategies"], "errors", key, "fix_strategies"),
        )

    @staticmethod
    def _row_to_command(row: sqlite3.Row) -> Command:
        key = row["id"]
        return Command(
            id=key,
            tool=row["tool"],
            command=row["command"],
            description=row["description"],
            flags=_decode_records(row["flags"], "commands", key, "flags", CommandFlag.from_dict),
            examples=_decode_strings(row["examples"], "commands", key, "examples"),
        )
