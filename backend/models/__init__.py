"""SQLAlchemy ORM models."""

from .bank_account import BankAccount
from .bank_connection import BankConnection
from .bank_transaction import BankTransaction
from .user import User
from .utils import generate_uuid, utcnow

__all__ = ["BankAccount", "BankConnection", "BankTransaction", "User", "generate_uuid", "utcnow"]
