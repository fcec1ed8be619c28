"""BankConnection model - one linkage between a user and an aggregator identity."""

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow
from services.connection_state import ConnectionStatus


class BankConnection(Base):
    """A user's link to the aggregator.

    Created as a ``pending`` placeholder when the user first asks to link a
    bank; the institution fields and ``aggregator_connection_id`` are filled
    in when the aggregator first reports accounts. Re-used on later link
    attempts rather than re-created.
    """

    __tablename__ = "bank_connections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    aggregator_user_id = Column(String, nullable=True, index=True)
    aggregator_connection_id = Column(String, nullable=False, default="")
    institution_id = Column(String, nullable=False, default="")
    institution_name = Column(String, nullable=False, default="Pending")
    status = Column(String, nullable=False, default=ConnectionStatus.PENDING.value)
    consent_expires_at = Column(DateTime, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="connections")
    accounts = relationship(
        "BankAccount",
        back_populates="connection",
        cascade="all, delete-orphan",
        order_by="BankAccount.account_name",
    )

    @property
    def connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(self.status)

    @property
    def account_count(self) -> int:
        return len(self.accounts)
