"""
FaceScan-Auth - Database Layer
Storage for enrolled user profiles, face embeddings and audit logs
"""

import sqlite3
import json
import logging
from typing import Optional, List, Dict
from datetime import datetime

from core.models import UserProfile

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite database manager for FaceScan-Auth
    Stores: Users, Face Embeddings (with appearance flags), Audit Logs
    """

    def __init__(self, db_path: str = "faceauth_db.sqlite"):
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None

        logger.info(f"Initializing database: {db_path}")

    def connect(self):
        """Establish database connection"""
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row  # Access columns by name
            self.conn.execute("PRAGMA foreign_keys = ON")
            logger.info("Database connected successfully")

        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def initialize_schema(self):
        """Create database tables if they don't exist"""
        try:
            cursor = self.conn.cursor()

            # Users table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    last_updated TEXT NOT NULL
                )
            """)

            # Face embeddings table, one row per captured sample
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS face_embeddings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    sample_index INTEGER NOT NULL,
                    embedding_data TEXT NOT NULL,
                    has_glasses BOOLEAN DEFAULT 0,
                    has_facial_hair BOOLEAN DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                )
            """)

            # Audit logs table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS audit_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT,
                    action TEXT NOT NULL,
                    details TEXT,
                    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    status TEXT DEFAULT 'success'
                )
            """)

            self.conn.commit()
            logger.info("Database schema initialized successfully")

        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            raise

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed")

    # ==================== PROFILE OPERATIONS ====================

    def save_profile(self, profile: UserProfile) -> Optional[int]:
        """
        Store a new user profile with all of its samples

        Args:
            profile: Profile to store; the name must not be enrolled yet

        Returns:
            User ID if successful, None otherwise
        """
        try:
            cursor = self.conn.cursor()

            cursor.execute(
                "INSERT INTO users (username, last_updated) VALUES (?, ?)",
                (profile.name, profile.last_updated.isoformat())
            )
            user_id = cursor.lastrowid

            for index, embedding in enumerate(profile.embeddings):
                cursor.execute(
                    """INSERT INTO face_embeddings
                    (user_id, sample_index, embedding_data, has_glasses, has_facial_hair)
                    VALUES (?, ?, ?, ?, ?)""",
                    (
                        user_id,
                        index,
                        json.dumps([float(v) for v in embedding]),
                        bool(profile.has_glasses[index]),
                        bool(profile.has_facial_hair[index]),
                    )
                )

            self.conn.commit()

            logger.info(f"Profile saved: {profile.name} (ID: {user_id}, samples: {profile.sample_count})")
            self.log_audit(profile.name, "user_registered", f"Samples: {profile.sample_count}")

            return user_id

        except sqlite3.IntegrityError:
            self.conn.rollback()
            logger.warning(f"User already exists: {profile.name}")
            return None
        except Exception as e:
            self.conn.rollback()
            logger.error(f"Profile save failed: {e}")
            return None

    def get_profile(self, username: str) -> Optional[UserProfile]:
        """Get a user profile by name"""
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM users WHERE username = ?", (username,))
            row = cursor.fetchone()

            if row:
                return self._build_profile(row)
            return None

        except Exception as e:
            logger.error(f"Failed to get profile: {e}")
            return None

    def load_profiles(self) -> List[UserProfile]:
        """
        Get all enrolled profiles in registration order

        Profiles that fail to load are logged and skipped.
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM users ORDER BY id ASC")
            rows = cursor.fetchall()

        except Exception as e:
            logger.error(f"Failed to load profiles: {e}")
            return []

        profiles = []
        for row in rows:
            try:
                profiles.append(self._build_profile(row))
            except (ValueError, json.JSONDecodeError) as e:
                logger.error(f"Skipping corrupted profile {row['username']}: {e}")

        return profiles

    def user_exists(self, username: str) -> bool:
        """Check whether a name is already enrolled"""
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT 1 FROM users WHERE username = ?", (username,))
            return cursor.fetchone() is not None

        except Exception as e:
            logger.error(f"Failed to check user: {e}")
            return False

    def delete_user(self, username: str) -> bool:
        """
        Delete a user and all associated embeddings

        Args:
            username: Name of the user to delete

        Returns:
            True if a user was deleted, False otherwise
        """
        try:
            cursor = self.conn.cursor()

            # Delete user (CASCADE will handle embeddings)
            cursor.execute("DELETE FROM users WHERE username = ?", (username,))
            deleted = cursor.rowcount > 0

            self.conn.commit()

            if deleted:
                logger.info(f"User deleted: {username}")
                self.log_audit(username, "user_deleted")
            else:
                logger.warning(f"User not found for deletion: {username}")

            return deleted

        except Exception as e:
            logger.error(f"Failed to delete user {username}: {e}")
            return False

    def _build_profile(self, row: sqlite3.Row) -> UserProfile:
        cursor = self.conn.cursor()
        cursor.execute(
            """SELECT * FROM face_embeddings
            WHERE user_id = ?
            ORDER BY sample_index ASC""",
            (row['id'],)
        )
        samples = cursor.fetchall()

        return UserProfile(
            name=row['username'],
            embeddings=[json.loads(s['embedding_data']) for s in samples],
            has_glasses=[bool(s['has_glasses']) for s in samples],
            has_facial_hair=[bool(s['has_facial_hair']) for s in samples],
            last_updated=datetime.fromisoformat(row['last_updated']),
        )

    # ==================== AUDIT LOG OPERATIONS ====================

    def log_audit(
        self,
        username: Optional[str],
        action: str,
        details: Optional[str] = None,
        status: str = "success"
    ):
        """Log an audit event"""
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                "INSERT INTO audit_logs (username, action, details, status) VALUES (?, ?, ?, ?)",
                (username, action, details, status)
            )
            self.conn.commit()

        except Exception as e:
            logger.error(f"Failed to log audit: {e}")

    def get_audit_logs(self, username: Optional[str] = None, limit: int = 100) -> List[Dict]:
        """Get audit logs, newest first"""
        try:
            cursor = self.conn.cursor()

            if username:
                cursor.execute(
                    "SELECT * FROM audit_logs WHERE username = ? ORDER BY id DESC LIMIT ?",
                    (username, limit)
                )
            else:
                cursor.execute(
                    "SELECT * FROM audit_logs ORDER BY id DESC LIMIT ?",
                    (limit,)
                )

            rows = cursor.fetchall()
            return [dict(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get audit logs: {e}")
            return []
