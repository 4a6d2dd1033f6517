import uuid
from datetime import date, datetime
from typing import Any, Dict, List

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    name: str = Field(max_length=100)
    # monthly | weekly | custom
    type: str = Field(default="monthly", max_length=10)

    start_date: date = Field(index=True)
    end_date: date = Field(index=True)

    # [{category, limit, spent, remaining, percentage}]; the last three are a
    # cache refreshed by reconciliation, never read back as truth.
    category_budgets: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    total_limit: float = 0
    total_spent: float = 0
    total_remaining: float = 0

    # [{category, threshold, triggered, triggered_at}]
    alerts: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
