# tools.py
# Demonstration tool provider: a read-only SQLite database.
# The orchestrator never calls these functions directly; it reaches them
# through a LocalToolProvider built by build_demo_provider().

import logging
import os
import re
import sqlite3
from contextlib import closing

from tool_orchestrator.registry import LocalTool, LocalToolProvider

logger = logging.getLogger(__name__)

DEMO_PROVIDER_ID = "sqlite-demo"
MAX_ROWS = 100

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_READ_ONLY = re.compile(r"^\s*(select|with|pragma\s+table_info)\b", re.IGNORECASE)

DEMO_SCHEMA = """\
CREATE TABLE IF NOT EXISTS patients (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    birth_year INTEGER,
    diagnosis TEXT
);
CREATE TABLE IF NOT EXISTS samples (
    id INTEGER PRIMARY KEY,
    patient_id INTEGER NOT NULL REFERENCES patients(id),
    tissue TEXT,
    collected_on TEXT
);
"""

DEMO_ROWS: dict[str, list[tuple]] = {
    "patients": [
        (1, "Ada Lovelace", 1815, "arrhythmia"),
        (2, "Alan Turing", 1912, "none"),
        (3, "Grace Hopper", 1906, "hypertension"),
    ],
    "samples": [
        (1, 1, "blood", "2024-01-12"),
        (2, 1, "saliva", "2024-02-03"),
        (3, 3, "blood", "2024-03-21"),
    ],
}


def seed_demo_database(path: str) -> str:
    """Create (or top up) the demo database at `path`. Returns the path."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with closing(sqlite3.connect(path)) as conn, conn:
        conn.executescript(DEMO_SCHEMA)
        for table, rows in DEMO_ROWS.items():
            placeholders = ", ".join("?" for _ in rows[0])
            conn.executemany(f"INSERT OR IGNORE INTO {table} VALUES ({placeholders})", rows)
    logger.info("Seeded demo database at %s", path)
    return path


def _connect(path: str) -> sqlite3.Connection:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Database {path} does not exist")
    return sqlite3.connect(f"file:{path}?mode=ro", uri=True)


def _table_names(conn: sqlite3.Connection) -> list[str]:
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' "
        "AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    return [row[0] for row in cursor.fetchall()]


def _tool_list_tables(path: str, args: dict) -> dict:
    with closing(_connect(path)) as conn:
        return {"tables": _table_names(conn)}


def _tool_describe_table(path: str, args: dict) -> dict:
    table = str(args.get("table", "")).strip()
    if not table:
        raise ValueError("Invalid argument: no table provided")
    if not _IDENTIFIER.match(table):
        raise ValueError(f"Invalid argument: {table!r} is not a table name")

    with closing(_connect(path)) as conn:
        if table not in _table_names(conn):
            raise LookupError(f"Table {table} does not exist")
        info = conn.execute(f"PRAGMA table_info({table})").fetchall()
        count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    return {
        "table": table,
        "columns": [{"name": row[1], "type": row[2] or "TEXT"} for row in info],
        "rowCount": count,
    }


def _tool_run_query(path: str, args: dict) -> dict:
    sql = str(args.get("sql", "")).strip()
    if not sql:
        raise ValueError("Invalid query: no sql provided")
    if not _READ_ONLY.match(sql):
        raise PermissionError("Permission denied: only SELECT queries are allowed")

    with closing(_connect(path)) as conn:
        try:
            cursor = conn.execute(sql)
        except sqlite3.Error as exc:
            raise ValueError(f"Invalid query: {exc}") from exc
        columns = [column[0] for column in cursor.description or []]
        rows = cursor.fetchmany(MAX_ROWS + 1)

    truncated = len(rows) > MAX_ROWS
    rows = rows[:MAX_ROWS]
    return {
        "data": {
            "columns": columns,
            "rows": [dict(zip(columns, row)) for row in rows],
        },
        "totalRows": len(rows),
        "metadata": {"truncated": truncated} if truncated else {},
    }


def build_tools(path: str) -> dict[str, LocalTool]:
    return {
        "list_tables": LocalTool(
            function=lambda args: _tool_list_tables(path, args),
            description="List every table in the database.",
            input_schema={"type": "object", "properties": {}},
        ),
        "describe_table": LocalTool(
            function=lambda args: _tool_describe_table(path, args),
            description="Show the columns, column types and row count of one table.",
            input_schema={
                "type": "object",
                "properties": {"table": {"type": "string", "description": "Table name"}},
                "required": ["table"],
            },
        ),
        "run_query": LocalTool(
            function=lambda args: _tool_run_query(path, args),
            description=f"Run a read-only SQL SELECT query (at most {MAX_ROWS} rows returned).",
            input_schema={
                "type": "object",
                "properties": {"sql": {"type": "string", "description": "SELECT statement"}},
                "required": ["sql"],
            },
        ),
    }


def build_demo_provider(path: str, provider_id: str = DEMO_PROVIDER_ID) -> LocalToolProvider:
    return LocalToolProvider(provider_id, build_tools(path))
