"""Lightweight SQL migrations runner.

Applies ``*.sql`` files in lexical order from the project's ``migrations/``
directory, skipping rollback scripts. Applied filenames are recorded in a
``schema_migrations`` table so each file runs once per database. Production
deployments may use their platform's migration mechanism instead.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        if "rollback" in p.name.lower():
            continue
        yield p


def _split_statements(sql: str) -> list[str]:
    """Split on ``;`` outside single-quoted literals, dropping ``--`` comments.

    Comments are removed while scanning, so a ``;`` inside one never ends a
    statement.
    """
    raw: list[str] = []
    buf: list[str] = []
    in_quote = False
    in_comment = False
    for idx, ch in enumerate(sql):
        if in_comment:
            if ch == "\n":
                in_comment = False
                buf.append(ch)
            continue
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote and sql.startswith("--", idx):
            in_comment = True
            continue
        elif ch == ";" and not in_quote:
            raw.append("".join(buf))
            buf.clear()
            continue
        buf.append(ch)
    raw.append("".join(buf))

    statements = []
    for stmt in raw:
        s = "\n".join(ln.rstrip() for ln in stmt.strip().splitlines())
        if s and s.upper() not in {"BEGIN", "COMMIT", "END"}:
            statements.append(s)
    return statements


def _ensure_journal(conn: Connection) -> set[str]:
    conn.execute(
        sql_text(
            "CREATE TABLE IF NOT EXISTS schema_migrations (filename TEXT PRIMARY KEY, applied_at TEXT NOT NULL)"
        )
    )
    rows = conn.execute(sql_text("SELECT filename FROM schema_migrations")).fetchall()
    return {str(r[0]) for r in rows}


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] | None = None) -> list[str]:
    """Apply pending migrations and return the filenames applied by this call."""
    root = Path(migrations_dir) if migrations_dir is not None else MIGRATIONS_DIR
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", root)
        return []

    applied_now: list[str] = []
    with engine.begin() as conn:
        applied = _ensure_journal(conn)
        for sql_path in _iter_sql_files(root):
            fname = sql_path.name
            if fname in applied:
                continue
            # One statement per execute() keeps SQLite's DB-API happy
            for stmt in _split_statements(sql_path.read_text(encoding="utf-8")):
                conn.exec_driver_sql(stmt)
            conn.execute(
                sql_text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :at)"),
                {
                    "f": fname,
                    "at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
                },
            )
            applied_now.append(fname)
            logger.info("migration_applied file=%s", fname)
    return applied_now


__all__ = ["MIGRATIONS_DIR", "apply_migrations"]
