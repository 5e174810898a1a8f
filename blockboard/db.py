"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class AccessExistsError(Exception):
    """Raised when a second access is stored for the same (user_id, type)."""


class DbClient(Protocol):
    """Interface for database access."""

    def list_dashboards(self, owner_id: str) -> list["DashboardRecord"]:
        ...

    def create_dashboard(self, name: str, owner_id: str) -> "DashboardRecord":
        ...

    def get_dashboard(self, dashboard_id: int) -> Optional["DashboardRecord"]:
        ...

    def update_dashboard(
        self, dashboard_id: int, name: str
    ) -> Optional["DashboardRecord"]:
        ...

    def delete_dashboard(self, dashboard_id: int) -> None:
        ...

    def create_block(
        self, dashboard_id: int, type: str, settings: dict
    ) -> "BlockRecord":
        ...

    def get_block(self, block_id: int) -> Optional["BlockRecord"]:
        ...

    def list_blocks(self, dashboard_id: int) -> list["BlockRecord"]:
        ...

    def delete_block(self, block_id: int) -> None:
        ...

    def list_accesses(self, user_id: str) -> list["AccessRecord"]:
        ...

    def get_access(self, user_id: str, type: str) -> Optional["AccessRecord"]:
        ...

    def create_access(self, user_id: str, type: str, token: str) -> "AccessRecord":
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DashboardRecord:
    id: int
    name: str
    owner_id: str
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class BlockRecord:
    id: int
    type: str
    settings: dict
    dashboard_id: int

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "settings": self.settings,
            "dashboard_id": self.dashboard_id,
        }


@dataclass
class AccessRecord:
    id: int
    user_id: str
    type: str
    token: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "token": self.token,
        }


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.dashboards: Dict[int, DashboardRecord] = {}
        self.blocks: Dict[int, BlockRecord] = {}
        self.accesses: Dict[int, AccessRecord] = {}
        self._sequences: Dict[str, itertools.count] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.dashboards.clear()
        self.blocks.clear()
        self.accesses.clear()
        self._sequences.clear()

    def _next_id(self, table: str) -> int:
        # One serial per table, never reused after deletes.
        return next(self._sequences.setdefault(table, itertools.count(1)))

    def list_dashboards(self, owner_id: str) -> list[DashboardRecord]:
        owned = [d for d in self.dashboards.values() if d.owner_id == owner_id]
        return sorted(owned, key=lambda d: (d.created_at, d.id), reverse=True)

    def create_dashboard(self, name: str, owner_id: str) -> DashboardRecord:
        record = DashboardRecord(
            id=self._next_id("dashboards"), name=name, owner_id=owner_id
        )
        self.dashboards[record.id] = record
        return record

    def get_dashboard(self, dashboard_id: int) -> Optional[DashboardRecord]:
        return self.dashboards.get(dashboard_id)

    def update_dashboard(
        self, dashboard_id: int, name: str
    ) -> Optional[DashboardRecord]:
        record = self.dashboards.get(dashboard_id)
        if record:
            record.name = name
        return record

    def delete_dashboard(self, dashboard_id: int) -> None:
        self.dashboards.pop(dashboard_id, None)
        for block_id in [
            b.id for b in self.blocks.values() if b.dashboard_id == dashboard_id
        ]:
            del self.blocks[block_id]

    def create_block(self, dashboard_id: int, type: str, settings: dict) -> BlockRecord:
        record = BlockRecord(
            id=self._next_id("blocks"),
            type=type,
            settings=settings,
            dashboard_id=dashboard_id,
        )
        self.blocks[record.id] = record
        return record

    def get_block(self, block_id: int) -> Optional[BlockRecord]:
        return self.blocks.get(block_id)

    def list_blocks(self, dashboard_id: int) -> list[BlockRecord]:
        return sorted(
            (b for b in self.blocks.values() if b.dashboard_id == dashboard_id),
            key=lambda b: b.id,
        )

    def delete_block(self, block_id: int) -> None:
        self.blocks.pop(block_id, None)

    def list_accesses(self, user_id: str) -> list[AccessRecord]:
        return [a for a in self.accesses.values() if a.user_id == user_id]

    def get_access(self, user_id: str, type: str) -> Optional[AccessRecord]:
        for access in self.accesses.values():
            if access.user_id == user_id and access.type == type:
                return access
        return None

    def create_access(self, user_id: str, type: str, token: str) -> AccessRecord:
        if self.get_access(user_id, type):
            raise AccessExistsError(f"{type} access already stored for {user_id}")
        record = AccessRecord(
            id=self._next_id("accesses"),
            user_id=user_id,
            type=type,
            token=token,
        )
        self.accesses[record.id] = record
        return record


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_dashboard(row: "DashboardRow") -> DashboardRecord:
        return DashboardRecord(
            id=row.id,
            name=row.name,
            owner_id=row.owner_id,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_block(row: "BlockRow") -> BlockRecord:
        return BlockRecord(
            id=row.id,
            type=row.type,
            settings=row.settings,
            dashboard_id=row.dashboard_id,
        )

    @staticmethod
    def _to_access(row: "AccessRow") -> AccessRecord:
        return AccessRecord(
            id=row.id, user_id=row.user_id, type=row.type, token=row.token
        )

    def list_dashboards(self, owner_id: str) -> list[DashboardRecord]:
        with self.Session() as session:
            stmt = (
                select(DashboardRow)
                .where(DashboardRow.owner_id == owner_id)
                .order_by(DashboardRow.created_at.desc(), DashboardRow.id.desc())
            )
            return [self._to_dashboard(row) for row in session.scalars(stmt)]

    def create_dashboard(self, name: str, owner_id: str) -> DashboardRecord:
        with self.Session() as session:
            row = DashboardRow(name=name, owner_id=owner_id, created_at=_utcnow())
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_dashboard(row)

    def get_dashboard(self, dashboard_id: int) -> Optional[DashboardRecord]:
        with self.Session() as session:
            row = session.get(DashboardRow, dashboard_id)
            return self._to_dashboard(row) if row else None

    def update_dashboard(
        self, dashboard_id: int, name: str
    ) -> Optional[DashboardRecord]:
        with self.Session() as session:
            row = session.get(DashboardRow, dashboard_id)
            if not row:
                return None
            row.name = name
            session.commit()
            session.refresh(row)
            return self._to_dashboard(row)

    def delete_dashboard(self, dashboard_id: int) -> None:
        with self.Session() as session:
            session.execute(
                delete(BlockRow).where(BlockRow.dashboard_id == dashboard_id)
            )
            session.execute(delete(DashboardRow).where(DashboardRow.id == dashboard_id))
            session.commit()

    def create_block(self, dashboard_id: int, type: str, settings: dict) -> BlockRecord:
        with self.Session() as session:
            row = BlockRow(type=type, settings=settings, dashboard_id=dashboard_id)
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_block(row)

    def get_block(self, block_id: int) -> Optional[BlockRecord]:
        with self.Session() as session:
            row = session.get(BlockRow, block_id)
            return self._to_block(row) if row else None

    def list_blocks(self, dashboard_id: int) -> list[BlockRecord]:
        with self.Session() as session:
            stmt = (
                select(BlockRow)
                .where(BlockRow.dashboard_id == dashboard_id)
                .order_by(BlockRow.id.asc())
            )
            return [self._to_block(row) for row in session.scalars(stmt)]

    def delete_block(self, block_id: int) -> None:
        with self.Session() as session:
            session.execute(delete(BlockRow).where(BlockRow.id == block_id))
            session.commit()

    def list_accesses(self, user_id: str) -> list[AccessRecord]:
        with self.Session() as session:
            stmt = (
                select(AccessRow)
                .where(AccessRow.user_id == user_id)
                .order_by(AccessRow.id.asc())
            )
            return [self._to_access(row) for row in session.scalars(stmt)]

    def get_access(self, user_id: str, type: str) -> Optional[AccessRecord]:
        with self.Session() as session:
            stmt = (
                select(AccessRow)
                .where(AccessRow.user_id == user_id, AccessRow.type == type)
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_access(row) if row else None

    def create_access(self, user_id: str, type: str, token: str) -> AccessRecord:
        with self.Session() as session:
            row = AccessRow(user_id=user_id, type=type, token=token)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise AccessExistsError(
                    f"{type} access already stored for {user_id}"
                ) from exc
            session.refresh(row)
            return self._to_access(row)


Base = declarative_base()


class DashboardRow(Base):
    __tablename__ = "dashboards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class BlockRow(Base):
    __tablename__ = "blocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String, nullable=False)
    settings = Column(JSON, nullable=False, default=dict)
    dashboard_id = Column(
        Integer,
        ForeignKey("dashboards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class AccessRow(Base):
    __tablename__ = "accesses"
    __table_args__ = (UniqueConstraint("user_id", "type", name="accesses_user_type"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    token = Column(String, nullable=False)
