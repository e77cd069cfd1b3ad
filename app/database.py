"""
SQLite async database connection, initialization and paste storage.
"""
import hashlib
import logging
import os
import secrets
from pathlib import Path
from typing import Optional

import aiosqlite
from starlette.concurrency import run_in_threadpool

from exceptions import PersistenceError
from models import Entry, StoredEntry
from utils.code_generator import Identifier

logger = logging.getLogger(__name__)

# Secure database location (outside static/code paths)
DATA_DIR = Path(__file__).parent / "data"
DATABASE_PATH = Path(os.getenv("DATABASE_PATH", DATA_DIR / "pastes.db"))


async def get_db():
    """Get database connection."""
    db = await aiosqlite.connect(DATABASE_PATH)
    db.row_factory = aiosqlite.Row
    return db


async def init_db():
    """Initialize database with required tables."""
    DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(DATABASE_PATH) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY,
                uid INTEGER,
                text TEXT NOT NULL,
                extension TEXT,
                title TEXT,
                password_hash TEXT,
                burn_after_reading INTEGER,
                expires INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_entries_uid ON entries(uid)
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS uid_counter (
                id INTEGER PRIMARY KEY CHECK (id = 0),
                n INTEGER NOT NULL
            )
        """)
        await db.execute("INSERT OR IGNORE INTO uid_counter (id, n) VALUES (0, 0)")
        await db.commit()


def hash_password(password: str) -> str:
    """Hash a paste password as 'salt$digest' using scrypt."""
    salt = secrets.token_bytes(16)
    digest = hashlib.scrypt(password.encode("utf-8"), salt=salt, n=2 ** 14, r=8, p=1)
    return f"{salt.hex()}${digest.hex()}"


async def next_uid() -> int:
    """Atomically increment and return the owner id counter."""
    db = await get_db()
    try:
        cursor = await db.execute(
            "UPDATE uid_counter SET n = n + 1 WHERE id = 0 RETURNING n"
        )
        row = await cursor.fetchone()
        await db.commit()
    except aiosqlite.Error as e:
        raise PersistenceError(f"Failed to allocate uid: {e}") from e
    finally:
        await db.close()

    if row is None:
        raise PersistenceError("uid counter is missing")
    return row["n"]


async def insert(identifier: Identifier, entry: Entry):
    """
    Store a new paste.

    An identifier that is already taken is rejected, never overwritten.

    Raises:
        PersistenceError: If the write fails
    """
    password_hash = None
    if entry.password is not None:
        password_hash = await run_in_threadpool(hash_password, entry.password)

    db = await get_db()
    try:
        await db.execute(
            """
            INSERT INTO entries (id, uid, text, extension, title, password_hash, burn_after_reading, expires)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                identifier.value,
                entry.uid,
                entry.text,
                entry.extension,
                entry.title,
                password_hash,
                entry.burn_after_reading,
                entry.expires,
            )
        )
        await db.commit()
    except aiosqlite.IntegrityError as e:
        logger.warning(f"Identifier collision for {identifier}")
        raise PersistenceError(f"Identifier {identifier} already exists") from e
    except aiosqlite.Error as e:
        raise PersistenceError(f"Failed to store paste: {e}") from e
    finally:
        await db.close()


async def fetch(identifier: Identifier) -> Optional[StoredEntry]:
    """Read a paste back, or None if it does not exist."""
    db = await get_db()
    try:
        cursor = await db.execute(
            """
            SELECT uid, text, extension, title, password_hash, burn_after_reading
            FROM entries WHERE id = ?
            """,
            (identifier.value,)
        )
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        raise PersistenceError(f"Failed to read paste: {e}") from e
    finally:
        await db.close()

    if row is None:
        return None

    return StoredEntry(
        text=row["text"],
        extension=row["extension"],
        title=row["title"],
        burn_after_reading=bool(row["burn_after_reading"]),
        protected=row["password_hash"] is not None,
        uid=row["uid"],
    )


async def delete(identifier: Identifier):
    """Remove a paste."""
    db = await get_db()
    try:
        await db.execute("DELETE FROM entries WHERE id = ?", (identifier.value,))
        await db.commit()
    except aiosqlite.Error as e:
        raise PersistenceError(f"Failed to delete paste: {e}") from e
    finally:
        await db.close()
