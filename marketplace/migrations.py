"""
Schema migrations for databases created by older releases.

Fresh databases get the full schema from ``Base.metadata.create_all``; the
migrations below bring legacy databases up to the same shape. Every step
inspects the live schema and skips itself if the change is already present,
so applying a migration twice is harmless.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from marketplace.database import Base, Database, SchemaMigration
from marketplace.utils import now_ts

logger = logging.getLogger(__name__)


@dataclass
class AddColumn:
    """ALTER TABLE ... ADD COLUMN, skipped if the column exists."""

    table: str
    column: str
    ddl: str

    def apply(self, conn: Connection) -> bool:
        inspector = inspect(conn)
        if not inspector.has_table(self.table):
            logger.warning(f"Table {self.table} missing, cannot add column {self.column}")
            return False
        columns = [col["name"] for col in inspector.get_columns(self.table)]
        if self.column in columns:
            logger.debug(f"Column {self.table}.{self.column} already exists")
            return False
        conn.execute(text(f"ALTER TABLE {self.table} ADD COLUMN {self.column} {self.ddl}"))
        logger.info(f"Added column {self.table}.{self.column}")
        return True


@dataclass
class CreateIndex:
    """CREATE INDEX, skipped if an index with the same name exists."""

    name: str
    table: str
    columns: Sequence[str]

    def apply(self, conn: Connection) -> bool:
        inspector = inspect(conn)
        if not inspector.has_table(self.table):
            logger.warning(f"Table {self.table} missing, cannot create index {self.name}")
            return False
        existing = [idx["name"] for idx in inspector.get_indexes(self.table)]
        if self.name in existing:
            logger.debug(f"Index {self.name} already exists")
            return False
        cols = ", ".join(self.columns)
        conn.execute(text(f"CREATE INDEX {self.name} ON {self.table} ({cols})"))
        logger.info(f"Created index {self.name} on {self.table}({cols})")
        return True


@dataclass
class CreateTable:
    """Create a table from the ORM metadata if it does not exist."""

    table: str

    def apply(self, conn: Connection) -> bool:
        if inspect(conn).has_table(self.table):
            return False
        Base.metadata.tables[self.table].create(conn)
        logger.info(f"Created table {self.table}")
        return True


@dataclass
class Migration:
    version: int
    name: str
    steps: List = field(default_factory=list)


MIGRATIONS: List[Migration] = [
    Migration(
        1,
        "add_listing_cost_columns",
        [
            AddColumn("properties", "levies", "INTEGER"),
            AddColumn("properties", "rates_and_taxes", "INTEGER"),
            AddColumn("properties", "main_image", "VARCHAR(1024)"),
        ],
    ),
    Migration(
        2,
        "add_location_ids_to_properties",
        [
            AddColumn("properties", "province_id", "INTEGER"),
            AddColumn("properties", "city_id", "INTEGER"),
            AddColumn("properties", "suburb_id", "INTEGER"),
            CreateIndex("ix_properties_province_id", "properties", ["province_id"]),
            CreateIndex("ix_properties_city_id", "properties", ["city_id"]),
            CreateIndex("ix_properties_suburb_id", "properties", ["suburb_id"]),
        ],
    ),
    Migration(
        3,
        "add_agency_attribution_to_explore_content",
        [
            AddColumn("explore_content", "agency_id", "INTEGER"),
            CreateIndex("ix_explore_content_agency_id", "explore_content", ["agency_id"]),
        ],
    ),
    Migration(
        4,
        "add_partner_approved_content_count",
        [AddColumn("explore_partners", "approved_content_count", "INTEGER DEFAULT 0")],
    ),
    Migration(
        5,
        "add_price_percentiles",
        [
            AddColumn("price_analytics", "p25_price", "INTEGER DEFAULT 0"),
            AddColumn("price_analytics", "p75_price", "INTEGER DEFAULT 0"),
        ],
    ),
    Migration(6, "create_boost_credits", [CreateTable("boost_credits")]),
    Migration(
        7,
        "add_subscription_downgrade_schedule",
        [
            AddColumn("user_subscriptions", "downgrade_to_plan_id", "VARCHAR(50)"),
            AddColumn("user_subscriptions", "downgrade_effective_date", "INTEGER"),
        ],
    ),
    Migration(
        8,
        "add_property_status_price_index",
        [CreateIndex("idx_properties_status_price", "properties", ["status", "price"])],
    ),
    Migration(9, "add_explore_content_approved_at", [AddColumn("explore_content", "approved_at", "INTEGER")]),
    Migration(10, "create_content_approval_queue", [CreateTable("content_approval_queue")]),
    Migration(11, "create_founding_partners", [CreateTable("founding_partners")]),
    Migration(12, "create_location_searches", [CreateTable("location_searches")]),
]


class MigrationRunner:
    """Applies pending migrations in version order and records them."""

    def __init__(self, database: Database, migrations: Optional[List[Migration]] = None):
        self.database = database
        self.migrations = sorted(migrations if migrations is not None else MIGRATIONS, key=lambda m: m.version)
        versions = [m.version for m in self.migrations]
        if len(versions) != len(set(versions)):
            raise ValueError("Duplicate migration versions")

    def _ensure_migrations_table(self) -> None:
        SchemaMigration.__table__.create(self.database.engine, checkfirst=True)

    def applied_versions(self) -> Dict[int, int]:
        """Map of applied version -> applied_at."""
        self._ensure_migrations_table()
        with self.database.get_session() as session:
            return {row.version: row.applied_at for row in session.query(SchemaMigration).all()}

    def pending(self) -> List[Migration]:
        applied = self.applied_versions()
        return [m for m in self.migrations if m.version not in applied]

    def apply_all(self) -> List[int]:
        """
        Apply every pending migration.

        Returns:
            Versions applied in this run
        """
        applied = []
        for migration in self.pending():
            with self.database.engine.begin() as conn:
                changed = sum(1 for step in migration.steps if step.apply(conn))
                conn.execute(
                    SchemaMigration.__table__.insert().values(
                        version=migration.version,
                        name=migration.name,
                        applied_at=now_ts(),
                    )
                )
            logger.info(
                f"Applied migration {migration.version:03d} {migration.name} ({changed} changes)"
            )
            applied.append(migration.version)
        return applied

    def status(self) -> List[Dict]:
        applied = self.applied_versions()
        return [
            {
                "version": m.version,
                "name": m.name,
                "applied_at": applied.get(m.version),
            }
            for m in self.migrations
        ]
