"""
SQLite implementation of the chat store.

The schema mirrors the tables the HTTP side of the chat server writes to.
sqlite3 is blocking, so every query runs on the default executor to keep
the event loop free while a query is in flight.
"""

import asyncio
import functools
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..core.types import FRIENDSHIP_ACCEPTED, FRIENDSHIP_PENDING
from ..infrastructure import setup_logging
from ..infrastructure.exceptions import PersistenceUnavailable
from .base import ChatStore
from .models import DEFAULT_AVATAR, Message, User

logger = setup_logging("storage.database")

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        avatar TEXT DEFAULT 'default-avatar.png',
        status TEXT DEFAULT 'offline',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS friends (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        friend_id TEXT NOT NULL,
        status TEXT DEFAULT 'pending' CHECK (status IN ('pending', 'accepted', 'blocked')),
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY (friend_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE(user_id, friend_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS channels (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        type TEXT DEFAULT 'text' CHECK (type IN ('text', 'voice')),
        owner_id TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS channel_members (
        id TEXT PRIMARY KEY,
        channel_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        joined_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (channel_id) REFERENCES channels(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE(channel_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        channel_id TEXT,
        sender_id TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (channel_id) REFERENCES channels(id) ON DELETE CASCADE,
        FOREIGN KEY (sender_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS direct_messages (
        id TEXT PRIMARY KEY,
        sender_id TEXT NOT NULL,
        receiver_id TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        read_at DATETIME,
        FOREIGN KEY (sender_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY (receiver_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_friends_user ON friends(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_friends_friend ON friends(friend_id)",
]


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        avatar=row["avatar"] or DEFAULT_AVATAR,
        status=row["status"] or "offline",
    )


class SQLiteChatStore(ChatStore):
    """Chat store backed by a single SQLite database file."""

    def __init__(self, db_path: str = "data/database.sqlite"):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_database(self):
        """Initialize the database schema."""
        try:
            with self._connect() as conn:
                for statement in SCHEMA:
                    conn.execute(statement)
                conn.commit()
            logger.info(f"Chat database initialized at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize chat database: {e}")
            raise PersistenceUnavailable(str(e)) from e

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking query on the default executor."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except sqlite3.Error as e:
            logger.error(f"Query {func.__name__} failed: {e}")
            raise PersistenceUnavailable(str(e)) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _fetch_user(self, column: str, value: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT id, username, avatar, status FROM users WHERE {column} = ?",
                (value,),
            ).fetchone()
        return _row_to_user(row) if row else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        return await self._run(self._fetch_user, "id", user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._run(self._fetch_user, "username", username)

    def _fetch_accepted_friends(self, user_id: str) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT u.id, u.username, u.avatar, u.status
                FROM friends f
                JOIN users u
                  ON (f.friend_id = u.id AND f.user_id = ?)
                  OR (f.user_id = u.id AND f.friend_id = ?)
                WHERE (f.user_id = ? OR f.friend_id = ?) AND f.status = ?
                """,
                (user_id, user_id, user_id, user_id, FRIENDSHIP_ACCEPTED),
            ).fetchall()
        return [_row_to_user(row) for row in rows if row["id"] != user_id]

    async def get_accepted_friends(self, user_id: str) -> List[User]:
        return await self._run(self._fetch_accepted_friends, user_id)

    def _fetch_membership(self, channel_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM channel_members WHERE channel_id = ? AND user_id = ?",
                (channel_id, user_id),
            ).fetchone()
        return row is not None

    async def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        return await self._run(self._fetch_membership, channel_id, user_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _update_status(self, user_id: str, status: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE users SET status = ? WHERE id = ?", (status, user_id))
            conn.commit()

    async def set_user_status(self, user_id: str, status: str) -> None:
        await self._run(self._update_status, user_id, status)

    def _write_message(self, channel_id: str, sender_id: str, content: str) -> Message:
        message_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO messages (id, channel_id, sender_id, content) VALUES (?, ?, ?, ?)",
                (message_id, channel_id, sender_id, content.strip()),
            )
            row = conn.execute(
                """
                SELECT m.id, m.channel_id, m.content, m.timestamp,
                       u.id AS sender_id, u.username AS sender_username,
                       u.avatar AS sender_avatar
                FROM messages m
                JOIN users u ON m.sender_id = u.id
                WHERE m.id = ?
                """,
                (message_id,),
            ).fetchone()
            conn.commit()
        return Message(
            id=row["id"],
            content=row["content"],
            timestamp=row["timestamp"],
            sender_id=row["sender_id"],
            sender_username=row["sender_username"],
            sender_avatar=row["sender_avatar"] or DEFAULT_AVATAR,
            channel_id=row["channel_id"],
        )

    async def insert_message(
        self, channel_id: str, sender_id: str, content: str
    ) -> Message:
        return await self._run(self._write_message, channel_id, sender_id, content)

    def _write_direct_message(
        self, sender_id: str, receiver_id: str, content: str
    ) -> Message:
        message_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO direct_messages (id, sender_id, receiver_id, content) VALUES (?, ?, ?, ?)",
                (message_id, sender_id, receiver_id, content.strip()),
            )
            row = conn.execute(
                """
                SELECT dm.id, dm.content, dm.timestamp, dm.receiver_id,
                       s.id AS sender_id, s.username AS sender_username,
                       s.avatar AS sender_avatar
                FROM direct_messages dm
                JOIN users s ON dm.sender_id = s.id
                WHERE dm.id = ?
                """,
                (message_id,),
            ).fetchone()
            conn.commit()
        return Message(
            id=row["id"],
            content=row["content"],
            timestamp=row["timestamp"],
            sender_id=row["sender_id"],
            sender_username=row["sender_username"],
            sender_avatar=row["sender_avatar"] or DEFAULT_AVATAR,
            receiver_id=row["receiver_id"],
        )

    async def insert_direct_message(
        self, sender_id: str, receiver_id: str, content: str
    ) -> Message:
        return await self._run(
            self._write_direct_message, sender_id, receiver_id, content
        )

    # ------------------------------------------------------------------
    # Seeding helpers (used by fixtures and local setup)
    # ------------------------------------------------------------------

    def _write_user(self, username: str, email: str, password_hash: str) -> User:
        user_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO users (id, username, email, password_hash) VALUES (?, ?, ?, ?)",
                (user_id, username, email, password_hash),
            )
            conn.commit()
        return User(id=user_id, username=username)

    async def create_user(
        self, username: str, email: Optional[str] = None, password_hash: str = "!"
    ) -> User:
        return await self._run(
            self._write_user, username, email or f"{username}@localhost", password_hash
        )

    def _write_channel(self, name: str, owner_id: str, channel_type: str) -> str:
        channel_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO channels (id, name, type, owner_id) VALUES (?, ?, ?, ?)",
                (channel_id, name, channel_type, owner_id),
            )
            conn.execute(
                "INSERT INTO channel_members (id, channel_id, user_id) VALUES (?, ?, ?)",
                (str(uuid.uuid4()), channel_id, owner_id),
            )
            conn.commit()
        return channel_id

    async def create_channel(
        self, name: str, owner_id: str, channel_type: str = "text"
    ) -> str:
        """Create a channel; the owner becomes its first member."""
        return await self._run(self._write_channel, name, owner_id, channel_type)

    def _write_channel_member(self, channel_id: str, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO channel_members (id, channel_id, user_id) VALUES (?, ?, ?)",
                (str(uuid.uuid4()), channel_id, user_id),
            )
            conn.commit()

    async def add_channel_member(self, channel_id: str, user_id: str) -> None:
        await self._run(self._write_channel_member, channel_id, user_id)

    def _write_friendship(self, user_id: str, friend_id: str, status: str) -> str:
        friendship_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO friends (id, user_id, friend_id, status) VALUES (?, ?, ?, ?)",
                (friendship_id, user_id, friend_id, status),
            )
            conn.commit()
        return friendship_id

    async def add_friendship(
        self, user_id: str, friend_id: str, status: str = FRIENDSHIP_PENDING
    ) -> str:
        return await self._run(self._write_friendship, user_id, friend_id, status)

    def _update_friendship(self, friendship_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE friends SET status = ? WHERE id = ?",
                (FRIENDSHIP_ACCEPTED, friendship_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    async def accept_friendship(self, friendship_id: str) -> bool:
        return await self._run(self._update_friendship, friendship_id)
