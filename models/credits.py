"""Credit balance and ledger models.

Amounts are stored as integer hundredths of a credit so the ledger
never accumulates float error.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from models.enums import TransactionType


def credits_to_cents(amount: float) -> int:
    """Convert a credit amount to integer hundredths, truncating toward zero."""
    return int((Decimal(str(amount)) * 100).to_integral_value(rounding=ROUND_DOWN))


def cents_to_credits(cents: int) -> float:
    return float(Decimal(cents) / 100)


@dataclass
class CreditsBalance:
    user_id: str = ""
    balance: float = 0.0
    total_earned: float = 0.0
    total_spent: float = 0.0
    updated_at: Optional[datetime] = None


@dataclass
class CreditsTransaction:
    id: Optional[int] = None
    user_id: str = ""
    type: TransactionType = TransactionType.DEBIT
    amount: float = 0.0
    task_id: Optional[str] = None
    phase: Optional[str] = None
    description: str = ""
    created_at: Optional[datetime] = None
