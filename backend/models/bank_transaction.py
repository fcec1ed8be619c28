"""BankTransaction model - one transaction reported by the aggregator."""

from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utcnow


class BankTransaction(Base):
    """A bank transaction, deduplicated by ``aggregator_transaction_id``.

    ``amount`` is stored as an absolute magnitude and ``direction`` records
    credit/debit; use :attr:`signed_amount` to get the signed value.
    ``notes`` and ``user_category`` are local-only and never touched by sync.
    """

    __tablename__ = "bank_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(
        String(36), ForeignKey("bank_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    aggregator_transaction_id = Column(String, unique=True, index=True, nullable=False)
    description = Column(String, nullable=False, default="")
    amount = Column(Numeric(18, 2), nullable=False)
    balance = Column(Numeric(18, 2), nullable=True)  # Running balance after this transaction
    transaction_date = Column(DateTime, nullable=True, index=True)
    post_date = Column(DateTime, nullable=True)
    category = Column(String, nullable=True)  # Aggregator classification (subClass.title)
    sub_category = Column(String, nullable=True)  # subClass.code
    merchant_name = Column(String, nullable=True)
    direction = Column(String, nullable=True)  # "credit" | "debit"
    status = Column(String, nullable=True)  # e.g. "posted", "pending"
    raw_data = Column(Text, nullable=True)  # JSON string of the aggregator payload
    notes = Column(Text, nullable=True)
    user_category = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    account = relationship("BankAccount", back_populates="transactions")

    @property
    def signed_amount(self) -> Decimal:
        """Amount with sign restored: debits negative, everything else positive."""
        magnitude = Decimal(self.amount)
        if (self.direction or "").lower() == "debit":
            return -magnitude
        return magnitude
