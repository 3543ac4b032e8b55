"""SQLite database for profiles, roles, messages and society settings."""

import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from core.config import get_config


def get_db_path() -> Path:
    return Path(get_config().storage.database_path)


def init_db():
    """Initialize the database with required tables."""
    get_db_path().parent.mkdir(parents=True, exist_ok=True)

    with get_connection() as conn:
        # Profiles - one per signed-up member
        conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                user_id TEXT PRIMARY KEY,
                member_id TEXT,
                name TEXT NOT NULL DEFAULT '',
                email TEXT UNIQUE NOT NULL,
                phone TEXT DEFAULT '',
                flat_no TEXT DEFAULT '',
                wing TEXT DEFAULT '',
                maintenance_status TEXT DEFAULT 'pending',
                password_hash TEXT NOT NULL,
                password_salt TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Role assignments - at most one per user
        conn.execute("""
            CREATE TABLE IF NOT EXISTS user_roles (
                user_id TEXT PRIMARY KEY,
                role TEXT NOT NULL DEFAULT 'user',
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES profiles(user_id)
            )
        """)

        # Direct messages between residents and managers
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                sender_id TEXT NOT NULL,
                receiver_id TEXT NOT NULL,
                message TEXT NOT NULL,
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (sender_id) REFERENCES profiles(user_id),
                FOREIGN KEY (receiver_id) REFERENCES profiles(user_id)
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_receiver ON messages(receiver_id, is_read)"
        )

        # Society details - a single row, edited by managers
        conn.execute("""
            CREATE TABLE IF NOT EXISTS society_settings (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                name TEXT NOT NULL DEFAULT '',
                address_line1 TEXT DEFAULT '',
                address_line2 TEXT DEFAULT '',
                city TEXT DEFAULT '',
                state TEXT DEFAULT '',
                pincode TEXT DEFAULT '',
                contact_phone TEXT DEFAULT '',
                contact_email TEXT DEFAULT '',
                registration_number TEXT DEFAULT '',
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("INSERT OR IGNORE INTO society_settings (id) VALUES (1)")

        conn.commit()


@contextmanager
def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(str(get_db_path()))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@dataclass
class ProfileRecord:
    """A stored profile (credentials excluded)."""

    user_id: str
    email: str
    name: str = ""
    member_id: Optional[str] = None
    phone: str = ""
    flat_no: str = ""
    wing: str = ""
    maintenance_status: str = "pending"
    role: str = "user"
    created_at: Optional[str] = None


_PROFILE_SELECT = """
    SELECT p.user_id, p.member_id, p.name, p.email, p.phone, p.flat_no, p.wing,
           p.maintenance_status, p.created_at, COALESCE(r.role, 'user') AS role
    FROM profiles p
    LEFT JOIN user_roles r ON r.user_id = p.user_id
"""


def _row_to_profile(row: sqlite3.Row) -> ProfileRecord:
    return ProfileRecord(
        user_id=row["user_id"],
        member_id=row["member_id"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"] or "",
        flat_no=row["flat_no"] or "",
        wing=row["wing"] or "",
        maintenance_status=row["maintenance_status"] or "pending",
        role=row["role"],
        created_at=row["created_at"],
    )


class ProfileStore:
    """Manage profiles and their role assignments."""

    @staticmethod
    def create_profile(
        email: str,
        password_hash: str,
        password_salt: str,
        role: str = "user",
        name: str = "",
        member_id: str = None,
        phone: str = "",
        flat_no: str = "",
        wing: str = "",
        maintenance_status: str = "pending",
    ) -> ProfileRecord:
        """Create a profile and its role row. Raises ValueError if the email is taken."""
        user_id = str(uuid.uuid4())
        email = email.strip().lower()

        try:
            with get_connection() as conn:
                conn.execute(
                    """INSERT INTO profiles (user_id, member_id, name, email, phone, flat_no, wing,
                                             maintenance_status, password_hash, password_salt, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (user_id, member_id, name, email, phone, flat_no, wing,
                     maintenance_status, password_hash, password_salt,
                     datetime.utcnow().isoformat()),
                )
                conn.execute(
                    "INSERT INTO user_roles (user_id, role) VALUES (?, ?)",
                    (user_id, role),
                )
                conn.commit()
        except sqlite3.IntegrityError:
            raise ValueError(f"A profile already exists for {email}")

        return ProfileStore.get_profile(user_id)

    @staticmethod
    def get_profile(user_id: str) -> Optional[ProfileRecord]:
        with get_connection() as conn:
            row = conn.execute(f"{_PROFILE_SELECT} WHERE p.user_id = ?", (user_id,)).fetchone()
        return _row_to_profile(row) if row else None

    @staticmethod
    def get_credentials(email: str) -> Optional[tuple[str, str, str]]:
        """Return (user_id, password_hash, password_salt) for an email."""
        with get_connection() as conn:
            row = conn.execute(
                "SELECT user_id, password_hash, password_salt FROM profiles WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        if not row:
            return None
        return row["user_id"], row["password_hash"], row["password_salt"]

    @staticmethod
    def list_profiles() -> list[ProfileRecord]:
        with get_connection() as conn:
            rows = conn.execute(f"{_PROFILE_SELECT} ORDER BY p.created_at").fetchall()
        return [_row_to_profile(row) for row in rows]

    @staticmethod
    def set_role(user_id: str, role: str) -> None:
        """Insert or update the role for a user."""
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO user_roles (user_id, role, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET role = excluded.role,
                                                      updated_at = excluded.updated_at""",
                (user_id, role, datetime.utcnow().isoformat()),
            )
            conn.commit()


@dataclass
class MessageRecord:
    """A stored direct message."""

    id: str
    sender_id: str
    receiver_id: str
    message: str
    is_read: bool
    created_at: str


@dataclass
class ChatPartner:
    """Another profile the caller can message, with messages from them still unread."""

    user_id: str
    name: str
    flat_no: str
    unread_count: int


def _row_to_message(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        sender_id=row["sender_id"],
        receiver_id=row["receiver_id"],
        message=row["message"],
        is_read=bool(row["is_read"]),
        created_at=row["created_at"],
    )


class MessageStore:
    """Direct messages between two profiles."""

    @staticmethod
    def send(sender_id: str, receiver_id: str, message: str) -> MessageRecord:
        message_id = str(uuid.uuid4())
        with get_connection() as conn:
            conn.execute(
                """INSERT INTO messages (id, sender_id, receiver_id, message, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (message_id, sender_id, receiver_id, message, datetime.utcnow().isoformat()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        return _row_to_message(row)

    @staticmethod
    def conversation(user_id: str, partner_id: str) -> list[MessageRecord]:
        """Messages in both directions, oldest first."""
        with get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM messages
                   WHERE (sender_id = ? AND receiver_id = ?)
                      OR (sender_id = ? AND receiver_id = ?)
                   ORDER BY created_at, rowid""",
                (user_id, partner_id, partner_id, user_id),
            ).fetchall()
        return [_row_to_message(row) for row in rows]

    @staticmethod
    def mark_read(receiver_id: str, sender_id: str) -> int:
        """Mark everything ``sender_id`` sent to ``receiver_id`` as read. Returns the count."""
        with get_connection() as conn:
            cursor = conn.execute(
                """UPDATE messages SET is_read = 1
                   WHERE receiver_id = ? AND sender_id = ? AND is_read = 0""",
                (receiver_id, sender_id),
            )
            conn.commit()
        return cursor.rowcount

    @staticmethod
    def partners(user_id: str) -> list[ChatPartner]:
        """Every other profile, with the number of unread messages each sent to ``user_id``."""
        with get_connection() as conn:
            rows = conn.execute(
                """SELECT p.user_id, p.name, p.flat_no,
                          (SELECT COUNT(*) FROM messages m
                           WHERE m.sender_id = p.user_id AND m.receiver_id = ?
                             AND m.is_read = 0) AS unread_count
                   FROM profiles p
                   WHERE p.user_id != ?
                   ORDER BY p.name""",
                (user_id, user_id),
            ).fetchall()
        return [
            ChatPartner(
                user_id=row["user_id"],
                name=row["name"] or "Unknown",
                flat_no=row["flat_no"] or "",
                unread_count=row["unread_count"],
            )
            for row in rows
        ]


SETTINGS_FIELDS = (
    "name",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "pincode",
    "contact_phone",
    "contact_email",
    "registration_number",
)


class SettingsStore:
    """The society's own details (single row)."""

    @staticmethod
    def get() -> dict:
        with get_connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(SETTINGS_FIELDS)}, updated_at FROM society_settings WHERE id = 1"
            ).fetchone()
        if row is None:
            return {field: "" for field in SETTINGS_FIELDS}
        return {key: row[key] or "" for key in row.keys()}

    @staticmethod
    def update(values: dict) -> dict:
        """Overwrite the given fields; unknown keys are ignored."""
        changes = {k: v for k, v in values.items() if k in SETTINGS_FIELDS}
        if changes:
            assignments = ", ".join(f"{k} = ?" for k in changes)
            with get_connection() as conn:
                conn.execute("INSERT OR IGNORE INTO society_settings (id) VALUES (1)")
                conn.execute(
                    f"UPDATE society_settings SET {assignments}, updated_at = ? WHERE id = 1",
                    (*changes.values(), datetime.utcnow().isoformat()),
                )
                conn.commit()
        return SettingsStore.get()
