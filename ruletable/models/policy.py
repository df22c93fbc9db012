"""
SQL model for storing policy records.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class PolicyItem(Base):
    """A policy record stored in a SQL table, keyed by its derived id."""

    __tablename__ = "policy_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    attributes: Mapped[str] = mapped_column(Text, nullable=False)  # JSON format

    def __repr__(self) -> str:
        return f"<PolicyItem(id={self.id})>"
