
from pathlib import Path
from typing import Dict, Optional
import aiosqlite

SCHEMA_FILE = Path(__file__).parent / "schema.sql"


async def connect(db_path: str, pragmas: Optional[Dict[str, str]] = None) -> aiosqlite.Connection:
    """Open an aiosqlite connection with foreign keys on and any extra `pragmas`.

    Returns an open connection; caller is responsible for closing it.
    """
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row

    await conn.execute("PRAGMA foreign_keys = ON")
    if pragmas:
        for k, v in pragmas.items():
            await conn.execute(f"PRAGMA {k} = {v}")

    await conn.commit()
    return conn


def split_statements(sql: str) -> list[str]:
    """Split a schema script into statements, dropping `--` comments."""
    statements = []
    current = []
    for line in sql.split('\n'):
        if '--' in line:
            line = line[:line.index('--')]
        line = line.strip()
        if line:
            current.append(line)
            if line.endswith(';'):
                stmt = ' '.join(current).rstrip(';').strip()
                if stmt:
                    statements.append(stmt)
                current = []
    return statements


async def init_db(db_path: str, schema_path: Optional[str] = None) -> None:
    """Apply the schema (idempotent: every statement is IF NOT EXISTS).

    Creates the parent directory of `db_path` when missing. Defaults to
    `db/schema.sql` next to this module.
    """
    schema_file = Path(schema_path) if schema_path else SCHEMA_FILE
    if not schema_file.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_file}")

    db_file = Path(db_path)
    if db_file.parent and not db_file.parent.exists():
        db_file.parent.mkdir(parents=True, exist_ok=True)

    conn = await connect(db_path)
    try:
        for statement in split_statements(schema_file.read_text()):
            await conn.execute(statement)
        await conn.commit()
    finally:
        await conn.close()
