import uuid
from datetime import date, datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class RecurringTemplate(SQLModel, table=True):
    __tablename__ = "recurring_templates"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    template_name: str = Field(max_length=100)
    amount: float
    category: str = Field(max_length=50)
    description: str = Field(max_length=500)

    # daily | weekly | biweekly | monthly | yearly
    frequency: str = Field(max_length=10)
    start_date: date
    end_date: Optional[date] = Field(default=None)

    next_occurrence: date = Field(index=True)
    last_generated: Optional[date] = Field(default=None)

    is_active: bool = Field(default=True, index=True)
    auto_generate: bool = Field(default=True, index=True)
    reminder_days: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
