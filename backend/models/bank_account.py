"""BankAccount model - one external account under a connection."""

from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class BankAccount(Base):
    """An account reported by the aggregator.

    ``aggregator_account_id`` is globally unique and is the upsert key.
    Only the last four digits of the account number are ever stored.
    After creation, sync mutates only the balances and ``last_updated``.
    """

    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    connection_id = Column(
        String(36), ForeignKey("bank_connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    aggregator_account_id = Column(String, unique=True, index=True, nullable=False)
    account_number = Column(String(4), nullable=False, default="")
    account_name = Column(String, nullable=False)
    account_type = Column(String, nullable=True)
    balance = Column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    available_balance = Column(Numeric(18, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="AUD")
    institution = Column(String, nullable=True)
    last_updated = Column(DateTime, nullable=True)

    # Relationships
    connection = relationship("BankConnection", back_populates="accounts")
    transactions = relationship(
        "BankTransaction",
        back_populates="account",
        cascade="all, delete-orphan",
    )
