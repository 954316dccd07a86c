"""SQLite-backed card and tag store."""

import json
import sqlite3
from pathlib import Path
from typing import List

import structlog

from .collaborators import CardStore, TagStore
from .config import CARDS_DB
from .models import Card, StoreResult, Tag, TagResult
from .utils import generate_tag_id

log = structlog.get_logger()


class SQLiteCardStore(CardStore, TagStore):
    """Stores cards as JSON payloads plus a card/tag association table.

    Card upserts never touch the associations; those are written through
    ``set_tag_associations`` only.
    """

    def __init__(self, db_path: Path = CARDS_DB):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_database(self):
        """Create the tables if they do not exist yet."""
        db_exists = self.db_path.exists()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = self._connect()
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS cards(
                id TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tags(
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS card_tags(
                card_id TEXT NOT NULL,
                tag_id TEXT NOT NULL,
                PRIMARY KEY (card_id, tag_id)
            )
        """)
        conn.commit()
        conn.close()

        if db_exists:
            log.info("Database connected", db_path=str(self.db_path))
        else:
            log.info("Database created", db_path=str(self.db_path))

    @staticmethod
    def _payload(card: Card) -> str:
        return card.model_dump_json(exclude={"category_ids"})

    def _write_cards(self, cards: List[Card]) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO cards (id, payload, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    """,
                    [(card.id, self._payload(card)) for card in cards],
                )
        finally:
            conn.close()

    async def load_all(self) -> StoreResult:
        try:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT payload FROM cards ORDER BY rowid").fetchall()
                links = conn.execute("SELECT card_id, tag_id FROM card_tags ORDER BY rowid").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return StoreResult(success=False, error=str(e))

        tag_ids = {}
        for card_id, tag_id in links:
            tag_ids.setdefault(card_id, []).append(tag_id)

        cards = []
        for (payload,) in rows:
            card = Card.model_validate(json.loads(payload))
            card.category_ids = tag_ids.get(card.id, [])
            cards.append(card)
        return StoreResult(success=True, data=cards)

    async def batch_upsert(self, cards: List[Card]) -> StoreResult:
        try:
            self._write_cards(cards)
        except sqlite3.Error as e:
            log.error("Error saving cards", count=len(cards), error=str(e))
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, data=list(cards))

    async def upsert_one(self, card: Card) -> StoreResult:
        try:
            self._write_cards([card])
        except sqlite3.Error as e:
            log.error("Error saving card", card_id=card.id, error=str(e))
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, data=card)

    async def set_tag_associations(self, card_id: str, tag_ids: List[str]) -> StoreResult:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("DELETE FROM card_tags WHERE card_id = ?", (card_id,))
                    conn.executemany(
                        "INSERT OR IGNORE INTO card_tags (card_id, tag_id) VALUES (?, ?)",
                        [(card_id, tag_id) for tag_id in tag_ids],
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True)

    async def list(self) -> StoreResult:
        try:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT id, name, description FROM tags ORDER BY name").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return StoreResult(success=False, error=str(e))
        return StoreResult(
            success=True,
            data=[Tag(id=row[0], name=row[1], description=row[2]) for row in rows],
        )

    async def create(self, name: str, description: str) -> TagResult:
        tag = Tag(id=generate_tag_id(), name=name, description=description)
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO tags (id, name, description) VALUES (?, ?, ?)",
                        (tag.id, tag.name, tag.description),
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            return TagResult(success=False, error=str(e))
        return TagResult(success=True, tag=tag)
