"""
Persistence for notification subscriptions.

Subscriptions live in one SQL table behind SQLAlchemy.  Each row gets a
generated opaque id at creation; creation is append-only, so subscribing
twice to the same symbol/indicator from the same contact stores two rows
that are evaluated independently.  Reads that match nothing return empty
lists and deleting an unknown id does nothing.
"""
from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from sqlalchemy import Column, DateTime, Float, String, create_engine, delete, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from ..core.rules import resolve_indicator

Base = declarative_base()


class Condition(str, Enum):
    ABOVE = "Above"
    BELOW = "Below"


def _new_id() -> str:
    return uuid.uuid4().hex


class NotificationSubscription(Base):
    __tablename__ = "stock_notifications"
    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, nullable=True, index=True)
    phone_number = Column(String, nullable=True, index=True)
    stock_symbol = Column(String, nullable=False, index=True)
    indicator = Column(String, nullable=False)
    threshold = Column(Float, nullable=False)
    condition = Column(String, nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    @property
    def contact_key(self) -> str:
        return self.email or self.phone_number or ""

    def __repr__(self) -> str:
        return (
            f"NotificationSubscription(id={self.id!r}, contact={self.contact_key!r}, "
            f"symbol={self.stock_symbol!r}, indicator={self.indicator!r}, "
            f"{self.condition} {self.threshold})"
        )


class SubscriptionCreate(BaseModel):
    """A validated subscribe request; invalid input never reaches the table."""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    stock_symbol: str = Field(..., alias="stockSymbol", min_length=1)
    indicator: str = Field(..., min_length=1)
    threshold: float
    condition: Condition

    @field_validator("email", "phone_number", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None

    @field_validator("stock_symbol")
    @classmethod
    def _upper_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("stockSymbol must not be blank")
        return v

    @field_validator("indicator")
    @classmethod
    def _known_indicator(cls, v: str) -> str:
        resolve_indicator(v)
        return v.strip()

    @field_validator("threshold")
    @classmethod
    def _finite_threshold(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("threshold must be a finite number")
        return v

    @field_validator("condition", mode="before")
    @classmethod
    def _normalise_condition(cls, v):
        if isinstance(v, str):
            return v.strip().capitalize()
        return v

    @model_validator(mode="after")
    def _require_contact(self):
        if not self.email and not self.phone_number:
            raise ValueError("At least an email or phone number must be provided.")
        return self


class NotificationStore:
    """CRUD over ``stock_notifications`` keyed by generated id."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "NotificationStore":
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                database_url,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(database_url, future=True)
        store = cls(engine)
        store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)  # create if missing; no destructive changes

    def _session(self) -> Session:
        return Session(self._engine, expire_on_commit=False)

    def create(self, request: SubscriptionCreate) -> NotificationSubscription:
        row = NotificationSubscription(
            id=_new_id(),
            email=request.email,
            phone_number=request.phone_number,
            stock_symbol=request.stock_symbol,
            indicator=request.indicator,
            threshold=request.threshold,
            condition=request.condition.value,
            created_at=datetime.now(timezone.utc),
        )
        with self._session() as session:
            session.add(row)
            session.commit()
        return row

    def _find(self, *criteria) -> List[NotificationSubscription]:
        stmt = select(NotificationSubscription).order_by(
            NotificationSubscription.created_at, NotificationSubscription.id
        )
        if criteria:
            stmt = stmt.where(*criteria)
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    def find_by_contact(self, key: str) -> List[NotificationSubscription]:
        return self._find(
            or_(NotificationSubscription.email == key, NotificationSubscription.phone_number == key)
        )

    def find_by_email(self, email: str) -> List[NotificationSubscription]:
        return self._find(NotificationSubscription.email == email)

    def find_by_phone(self, phone_number: str) -> List[NotificationSubscription]:
        return self._find(NotificationSubscription.phone_number == phone_number)

    def find_by_symbol(self, symbol: str) -> List[NotificationSubscription]:
        return self._find(func.upper(NotificationSubscription.stock_symbol) == symbol.strip().upper())

    def find_by_id(self, subscription_id: str) -> Optional[NotificationSubscription]:
        with self._session() as session:
            return session.get(NotificationSubscription, subscription_id)

    def delete_by_id(self, subscription_id: str) -> bool:
        """Delete one subscription; returns whether a row was removed."""
        with self._session() as session:
            result = session.execute(
                delete(NotificationSubscription).where(NotificationSubscription.id == subscription_id)
            )
            session.commit()
            return bool(result.rowcount)

    def all(self) -> List[NotificationSubscription]:
        return self._find()
