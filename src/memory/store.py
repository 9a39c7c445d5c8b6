"""Persistent storage for entities and their facts (SQLite)."""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import structlog

from db import wal_connect

from .models import (
    Entity,
    EntityType,
    Fact,
    FactCategory,
    FactStatus,
    Tier,
    coerce_datetime,
)
from .scoring import slugify

logger = structlog.get_logger()


class StoreError(Exception):
    """Read or write against the entity store failed."""


class EntityStore:
    """SQLite persistence for the entity graph."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self):
        conn = None
        try:
            conn = wal_connect(self.db_path, row_factory=True)
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"{type(e).__name__}: {e}") from e
        finally:
            if conn is not None:
                conn.close()

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entities (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    summary TEXT NOT NULL DEFAULT '',
                    summary_stale INTEGER NOT NULL DEFAULT 0,
                    summarized_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (type, slug)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS facts (
                    id TEXT PRIMARY KEY,
                    entity_id TEXT NOT NULL REFERENCES entities(id),
                    text TEXT NOT NULL,
                    category TEXT NOT NULL,
                    source_id TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'active',
                    superseded_by TEXT,
                    created_at TIMESTAMP,
                    last_accessed TIMESTAMP,
                    access_count INTEGER NOT NULL DEFAULT 0,
                    tier TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_entity ON facts(entity_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_status ON facts(status)")

    # --- reads ---

    def list_entities(self, entity_type: EntityType | None = None) -> list[Entity]:
        """All entities (optionally of one type) with all their facts attached."""
        with self._connect() as conn:
            if entity_type is None:
                rows = conn.execute("SELECT * FROM entities ORDER BY created_at, name").fetchall()
                fact_rows = conn.execute(
                    "SELECT * FROM facts ORDER BY created_at"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM entities WHERE type = ? ORDER BY created_at, name",
                    (EntityType(entity_type).value,),
                ).fetchall()
                fact_rows = conn.execute(
                    """SELECT f.* FROM facts f JOIN entities e ON e.id = f.entity_id
                       WHERE e.type = ? ORDER BY f.created_at""",
                    (EntityType(entity_type).value,),
                ).fetchall()

        by_entity: dict[str, list[Fact]] = {}
        for row in fact_rows:
            by_entity.setdefault(row["entity_id"], []).append(self._row_to_fact(row))

        entities = []
        for row in rows:
            entity = self._row_to_entity(row, by_entity.get(row["id"], []))
            if entity is not None:
                entities.append(entity)
        return entities

    def get_entity(self, entity_id: str) -> Entity | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM entities WHERE id = ?", (entity_id,)).fetchone()
            if not row:
                return None
            fact_rows = conn.execute(
                "SELECT * FROM facts WHERE entity_id = ? ORDER BY created_at", (entity_id,)
            ).fetchall()
        return self._row_to_entity(row, [self._row_to_fact(r) for r in fact_rows])

    def find_entity(self, entity_type: EntityType, slug: str) -> Entity | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id FROM entities WHERE type = ? AND slug = ?",
                (EntityType(entity_type).value, slug),
            ).fetchone()
        return self.get_entity(row["id"]) if row else None

    def get_fact(self, fact_id: str) -> Fact | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM facts WHERE id = ?", (fact_id,)).fetchone()
        return self._row_to_fact(row) if row else None

    # --- writes ---

    def create_entity(self, name: str, entity_type: EntityType) -> Entity:
        """Insert a new entity, or return the existing one with the same type and slug."""
        entity_type = EntityType(entity_type)
        slug = slugify(name)
        if not slug:
            raise ValueError(f"Entity name has no usable characters: {name!r}")

        existing = self.find_entity(entity_type, slug)
        if existing is not None:
            logger.info("store.entity_exists", slug=slug, type=entity_type.value)
            return existing

        entity = Entity(
            id=uuid.uuid4().hex[:16], slug=slug, name=name.strip(), type=entity_type
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO entities (id, slug, name, type, created_at) VALUES (?, ?, ?, ?, ?)",
                (entity.id, slug, entity.name, entity_type.value, datetime.now().isoformat()),
            )
        logger.info("store.entity_created", slug=slug, type=entity_type.value)
        return entity

    def add_facts(self, entity_id: str, facts: list[Fact]) -> None:
        with self._connect() as conn:
            conn.executemany(
                """INSERT INTO facts
                   (id, entity_id, text, category, source_id, status, superseded_by,
                    created_at, last_accessed, access_count, tier)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [self._fact_params(entity_id, f) for f in facts],
            )

    def mark_summary_stale(self, entity_id: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE entities SET summary_stale = 1 WHERE id = ?", (entity_id,))

    def update_summary(self, entity_id: str, summary: str, when: datetime | None = None):
        with self._connect() as conn:
            conn.execute(
                """UPDATE entities SET summary = ?, summary_stale = 0, summarized_at = ?
                   WHERE id = ?""",
                (summary, (when or datetime.now()).isoformat(), entity_id),
            )

    def save_entity(self, entity: Entity) -> None:
        """Persist fact status/tier changes and the summary in one transaction."""
        if entity.id is None:
            raise ValueError(f"Entity {entity.slug} has not been created in the store")
        with self._connect() as conn:
            conn.executemany(
                """UPDATE facts SET status = ?, superseded_by = ?, tier = ?,
                   last_accessed = ?, access_count = ? WHERE id = ?""",
                [
                    (
                        f.status.value,
                        f.superseded_by,
                        f.tier.value if f.tier else None,
                        f.last_accessed.isoformat() if f.last_accessed else None,
                        f.access_count,
                        f.id,
                    )
                    for f in entity.facts
                ],
            )
            conn.execute(
                """UPDATE entities SET summary = ?, summary_stale = ?, summarized_at = ?
                   WHERE id = ?""",
                (
                    entity.summary,
                    1 if entity.needs_summary else 0,
                    entity.summarized_at.isoformat() if entity.summarized_at else None,
                    entity.id,
                ),
            )

    def supersede_fact(self, fact_id: str, new_text: str, source_id: str) -> Fact:
        """Replace an active fact with a new one; the old one becomes superseded."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM facts WHERE id = ?", (fact_id,)).fetchone()
            if not row:
                raise ValueError(f"Fact not found: {fact_id}")
            old = self._row_to_fact(row)
            new = Fact(
                id=uuid.uuid4().hex[:16],
                text=new_text,
                category=old.category,
                source_id=source_id,
            )
            old.supersede(new.id)
            conn.execute(
                """INSERT INTO facts
                   (id, entity_id, text, category, source_id, status, superseded_by,
                    created_at, last_accessed, access_count, tier)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                self._fact_params(row["entity_id"], new),
            )
            conn.execute(
                "UPDATE facts SET status = ?, superseded_by = ? WHERE id = ?",
                (old.status.value, new.id, fact_id),
            )
            conn.execute(
                "UPDATE entities SET summary_stale = 1 WHERE id = ?", (row["entity_id"],)
            )
        return new

    def record_access(self, entity_id: str, fact_ids: list[str] | None = None) -> int:
        """Read hook: bump last_accessed/access_count on active facts. Returns facts touched."""
        now = datetime.now().isoformat()
        sql = """UPDATE facts SET last_accessed = ?, access_count = access_count + 1
                 WHERE entity_id = ? AND status = 'active'"""
        params: list = [now, entity_id]
        if fact_ids:
            placeholders = ",".join("?" for _ in fact_ids)
            sql += f" AND id IN ({placeholders})"
            params.extend(fact_ids)
        with self._connect() as conn:
            return conn.execute(sql, params).rowcount

    # --- stats ---

    def access_stats(self, entity_id: str) -> dict | None:
        entity = self.get_entity(entity_id)
        if entity is None:
            return None
        return {
            "total_accesses": entity.access_count,
            "last_accessed": entity.last_accessed,
            "fact_count": len(entity.facts),
        }

    def get_stats(self) -> dict:
        """Entity counts by type, fact counts by status and active facts by tier."""
        with self._connect() as conn:
            by_type = {
                r["type"]: r["cnt"]
                for r in conn.execute(
                    "SELECT type, COUNT(*) AS cnt FROM entities GROUP BY type"
                ).fetchall()
            }
            by_status = {
                r["status"]: r["cnt"]
                for r in conn.execute(
                    "SELECT status, COUNT(*) AS cnt FROM facts GROUP BY status"
                ).fetchall()
            }
            by_tier = {
                (r["tier"] or "untiered"): r["cnt"]
                for r in conn.execute(
                    "SELECT tier, COUNT(*) AS cnt FROM facts WHERE status = 'active' GROUP BY tier"
                ).fetchall()
            }
            stale = conn.execute(
                "SELECT COUNT(*) FROM entities WHERE summary_stale = 1"
            ).fetchone()[0]

        return {
            "entities": sum(by_type.values()),
            "by_type": by_type,
            "facts_by_status": by_status,
            "active_by_tier": by_tier,
            "stale_summaries": stale,
        }

    # --- row mapping ---

    @staticmethod
    def _fact_params(entity_id: str, f: Fact) -> tuple:
        return (
            f.id,
            entity_id,
            f.text,
            f.category.value,
            f.source_id,
            f.status.value,
            f.superseded_by,
            f.created_at.isoformat(),
            f.last_accessed.isoformat() if f.last_accessed else None,
            f.access_count,
            f.tier.value if f.tier else None,
        )

    @staticmethod
    def _row_to_fact(row: sqlite3.Row) -> Fact:
        d = dict(row)
        try:
            category = FactCategory(d.get("category"))
        except ValueError:
            category = FactCategory.CONTEXT
        try:
            status = FactStatus(d.get("status"))
        except ValueError:
            logger.warning("store.bad_fact_status", fact_id=d["id"], status=d.get("status"))
            status = FactStatus.ACTIVE
        try:
            tier = Tier(d["tier"]) if d.get("tier") else None
        except ValueError:
            tier = None
        try:
            access_count = max(0, int(d.get("access_count") or 0))
        except (TypeError, ValueError):
            access_count = 0

        return Fact(
            id=d["id"],
            text=d.get("text") or "",
            category=category,
            source_id=d.get("source_id") or "",
            created_at=coerce_datetime(d.get("created_at")) or datetime.now(),
            status=status,
            superseded_by=d.get("superseded_by"),
            last_accessed=coerce_datetime(d.get("last_accessed")),
            access_count=access_count,
            tier=tier,
        )

    @staticmethod
    def _row_to_entity(row: sqlite3.Row, facts: list[Fact]) -> Entity | None:
        d = dict(row)
        try:
            entity_type = EntityType(d["type"])
        except ValueError:
            logger.warning("store.bad_entity_type", entity_id=d["id"], type=d["type"])
            return None
        return Entity(
            id=d["id"],
            slug=d["slug"],
            name=d["name"],
            type=entity_type,
            facts=facts,
            summary=d.get("summary") or "",
            needs_summary=bool(d.get("summary_stale")),
            summarized_at=coerce_datetime(d.get("summarized_at")),
        )
