# File: src/parkledger/infrastructure/payments.py
"""
Funds ledgers used to settle parking fees

Implementations:
- InMemoryFundsLedger - dictionary of balances, for tests and demos
- SQLAlchemyFundsLedger - accounts table in any SQLAlchemy database, one
  database transaction per transfer

Both raise InsufficientFundsError when the payer cannot cover the amount
and FundsTransferError for anything else; a failed transfer never moves
money.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Optional
import logging

from sqlalchemy import Column, DateTime, Numeric, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..domain.arithmetic import BALANCE_MAX, fits_unsigned
from ..domain.exceptions import FundsTransferError, InsufficientFundsError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_amount(amount: int) -> None:
    if not fits_unsigned(amount, BALANCE_MAX):
        raise FundsTransferError(f"Invalid transfer amount: {amount}")


# ============================================================================
# IN-MEMORY LEDGER
# ============================================================================

class InMemoryFundsLedger:
    """Balances kept in a dictionary"""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._balances: Dict[str, int] = dict(balances or {})
        self._logger = logging.getLogger(self.__class__.__name__)

    def deposit(self, account: str, amount: int) -> int:
        _validate_amount(amount)
        new_balance = self._balances.get(account, 0) + amount
        if new_balance > BALANCE_MAX:
            raise FundsTransferError(f"Balance of {account} would overflow")
        self._balances[account] = new_balance
        return new_balance

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def transfer(self, source: str, dest: str, amount: int) -> None:
        _validate_amount(amount)
        available = self._balances.get(source, 0)
        if available < amount:
            raise InsufficientFundsError(
                f"{source} has {available}, cannot pay {amount}"
            )
        if source == dest or amount == 0:
            return
        if self._balances.get(dest, 0) + amount > BALANCE_MAX:
            raise FundsTransferError(f"Balance of {dest} would overflow")

        self._balances[source] = available - amount
        self._balances[dest] = self._balances.get(dest, 0) + amount
        self._logger.debug(f"Transferred {amount} from {source} to {dest}")


# ============================================================================
# SQLALCHEMY LEDGER
# ============================================================================

Base = declarative_base()


class AccountModel(Base):
    """SQLAlchemy model for a funds account"""
    __tablename__ = 'accounts'

    account_id = Column(String(128), primary_key=True)
    balance = Column(Numeric(precision=39, scale=0), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class SQLAlchemyFundsLedger:
    """Funds ledger persisted in a relational database"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_url(cls, database_url: str) -> 'SQLAlchemyFundsLedger':
        """Create the ledger and its tables for a database URL"""
        engine = create_engine(database_url, echo=False)
        Base.metadata.create_all(bind=engine)
        return cls(sessionmaker(autocommit=False, autoflush=False, bind=engine))

    def deposit(self, account: str, amount: int) -> int:
        _validate_amount(amount)
        try:
            with self.session_factory() as session, session.begin():
                model = session.get(AccountModel, account, with_for_update=True)
                if model is None:
                    model = AccountModel(account_id=account, balance=Decimal(0))
                    session.add(model)
                new_balance = int(model.balance) + amount
                if new_balance > BALANCE_MAX:
                    raise FundsTransferError(f"Balance of {account} would overflow")
                model.balance = Decimal(new_balance)
                return new_balance
        except SQLAlchemyError as e:
            self._logger.error(f"Error depositing to {account}: {e}")
            raise FundsTransferError(f"Deposit to {account} failed") from e

    def balance(self, account: str) -> int:
        try:
            with self.session_factory() as session:
                model = session.get(AccountModel, account)
                return int(model.balance) if model is not None else 0
        except SQLAlchemyError as e:
            self._logger.error(f"Error reading balance of {account}: {e}")
            raise FundsTransferError(f"Balance of {account} unavailable") from e

    def transfer(self, source: str, dest: str, amount: int) -> None:
        _validate_amount(amount)
        try:
            with self.session_factory() as session, session.begin():
                payer = session.get(AccountModel, source, with_for_update=True)
                available = int(payer.balance) if payer is not None else 0
                if available < amount:
                    raise InsufficientFundsError(
                        f"{source} has {available}, cannot pay {amount}"
                    )
                if source == dest or amount == 0:
                    return

                payee = session.get(AccountModel, dest, with_for_update=True)
                if payee is None:
                    payee = AccountModel(account_id=dest, balance=Decimal(0))
                    session.add(payee)
                credited = int(payee.balance) + amount
                if credited > BALANCE_MAX:
                    raise FundsTransferError(f"Balance of {dest} would overflow")

                payer.balance = Decimal(available - amount)
                payee.balance = Decimal(credited)
            self._logger.debug(f"Transferred {amount} from {source} to {dest}")
        except SQLAlchemyError as e:
            self._logger.error(f"Error transferring {amount} from {source} to {dest}: {e}")
            raise FundsTransferError(f"Transfer from {source} to {dest} failed") from e
