# File: src/parkledger/application/ports.py
"""
Collaborator interfaces consumed by the parking ledger service

The service depends only on these protocols; concrete adapters live in the
infrastructure layer and are wired by ParkingLedgerServiceFactory.
"""

from typing import Any, Dict, Protocol, runtime_checkable

from ..domain.models import DomainEvent


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves an opaque request origin to the caller's account id"""

    def authenticate(self, origin: Any) -> str:
        """Return the account id or raise UnauthorizedError"""
        ...


@runtime_checkable
class FundsLedger(Protocol):
    """Monetary ledger used to settle parking fees"""

    def transfer(self, source: str, dest: str, amount: int) -> None:
        """Debit source and credit dest, or raise FundsTransferError"""
        ...

    def balance(self, account: str) -> int:
        ...


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source in milliseconds"""

    def now(self) -> int:
        ...


@runtime_checkable
class IdentifierGenerator(Protocol):
    """Produces collision-resistant opaque keys"""

    def new_lot_hash(self, owner: str, payload: Dict[str, Any]) -> str:
        ...

    def new_info_hash(self, user_id: str, lot_hash: str, moment: int) -> str:
        ...


@runtime_checkable
class EventSink(Protocol):
    """Best-effort notification channel"""

    def publish(self, event: DomainEvent) -> None:
        ...
