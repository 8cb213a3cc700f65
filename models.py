import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Float,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class Direction(str, Enum):
    credit = "credit"
    debit = "debit"


class OccurrenceStatus(str, Enum):
    planned = "planned"
    done = "done"
    late = "late"


class CategoryDirection(str, Enum):
    credit = "credit"
    debit = "debit"
    both = "both"


class AccountKind(str, Enum):
    checking = "checking"
    savings = "savings"
    investment = "investment"
    individual = "individual"


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[AccountKind] = mapped_column(SAEnum(AccountKind), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_accounts_owner", "owner_id"),)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    direction: Mapped[CategoryDirection] = mapped_column(
        SAEnum(CategoryDirection), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "owner_id", "direction", "name", name="uq_category_owner_direction_name"
        ),
    )


class Occurrence(Base, TimestampMixin):
    __tablename__ = "occurrences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    direction: Mapped[Direction] = mapped_column(SAEnum(Direction), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # References into the account/category directories, not enforced here.
    account_id: Mapped[Optional[str]] = mapped_column(String(36))
    category_id: Mapped[Optional[str]] = mapped_column(String(36))
    planned_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    actual_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    competence_month: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[OccurrenceStatus] = mapped_column(
        SAEnum(OccurrenceStatus), nullable=False
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    series_id: Mapped[Optional[str]] = mapped_column(String(36))
    series_start_month: Mapped[Optional[str]] = mapped_column(String(7))
    series_end_month: Mapped[Optional[str]] = mapped_column(String(7))

    __table_args__ = (
        Index("ix_occurrences_owner_month", "owner_id", "competence_month"),
        Index("ix_occurrences_series", "series_id"),
        CheckConstraint("planned_amount >= 0", name="ck_occurrence_planned_positive"),
        CheckConstraint("actual_amount >= 0", name="ck_occurrence_actual_positive"),
    )
