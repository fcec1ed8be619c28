"""User model - the portal account that owns bank connections.

Only the fields the banking subsystem reads are mapped here; profile,
role and session data belong to the host application.
"""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class User(Base):
    """A portal user. Bank linking requires an assigned advisor."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, index=True, nullable=True)
    advisor_id = Column(String(36), nullable=True)  # Set when the user is an advisory client
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    connections = relationship(
        "BankConnection",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def has_advisor(self) -> bool:
        return bool(self.advisor_id)
