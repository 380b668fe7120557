import logging
import sqlite3

from .plans import DEFAULT_PLANS

TABLES = ("members", "transactions", "checkins", "membership_types", "employees", "class_types")


def create_database(db_name: str) -> sqlite3.Connection:
    """
    Connects to an SQLite database and creates the gym tables if they don't exist.
    Mirrors the hosted store's tables so the local store is a drop-in replacement.
    Args:
        db_name (str): The database file (e.g., 'gymdesk.db' or ':memory:').
    Returns:
        sqlite3.Connection: an open connection with the schema in place.
    """
    conn = sqlite3.connect(db_name, check_same_thread=False)
    try:
        cursor = conn.cursor()

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            dni TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            phone TEXT,
            membership_type TEXT NOT NULL,
            start_date TEXT NOT NULL,
            expiry_date TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL CHECK(type IN ('income', 'expense')),
            amount REAL NOT NULL CHECK(amount > 0),
            concept TEXT NOT NULL,
            date TEXT NOT NULL,
            time TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS checkins (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_dni TEXT NOT NULL,
            member_name TEXT NOT NULL,
            check_in_time TEXT NOT NULL,
            membership_status TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS membership_types (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            key TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            duration_days INTEGER NOT NULL CHECK(duration_days > 0),
            price REAL NOT NULL,
            has_personal_trainer BOOLEAN NOT NULL DEFAULT 0,
            description TEXT,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS employees (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            role TEXT NOT NULL,
            phone TEXT,
            email TEXT NOT NULL,
            salary REAL NOT NULL DEFAULT 0,
            hire_date TEXT,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )

        cursor.execute(
            """
        CREATE TABLE IF NOT EXISTS class_types (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            duration_minutes INTEGER NOT NULL,
            price REAL NOT NULL,
            max_participants INTEGER NOT NULL,
            requires_trainer BOOLEAN NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """
        )
        conn.commit()
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def seed_default_plans(conn: sqlite3.Connection) -> int:
    """Inserts the built-in plans when the membership_types table is empty.
    Returns the number of plans inserted.
    """
    cursor = conn.cursor()
    cursor.execute("SELECT COUNT(*) FROM membership_types")
    if cursor.fetchone()[0] > 0:
        return 0
    cursor.executemany(
        "INSERT INTO membership_types (key, name, duration_days, price, has_personal_trainer, is_active) VALUES (?, ?, ?, ?, ?, 1)",
        [
            (p.key, p.name, p.duration_days, p.price, 1 if p.has_personal_trainer else 0)
            for p in DEFAULT_PLANS
        ],
    )
    conn.commit()
    logging.info(f"Seeded {len(DEFAULT_PLANS)} default membership plans.")
    return len(DEFAULT_PLANS)


def initialize_database(db_name: str) -> sqlite3.Connection:
    conn = create_database(db_name)
    seed_default_plans(conn)
    return conn
