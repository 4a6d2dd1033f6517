import uuid
from datetime import datetime, date
from typing import Optional
from sqlmodel import SQLModel, Field


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True
    )

    amount: float
    description: str
    category: str = Field(max_length=50, index=True)
    expense_date: date = Field(index=True)

    ai_suggested: bool = Field(default=False)
    recurring_template_id: Optional[uuid.UUID] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
