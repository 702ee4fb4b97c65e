# File: src/parkledger/infrastructure/repositories.py
"""
Repository Pattern Implementation for the Parking Ledger

The ledger state is an arena of records keyed by opaque hashes plus a set
of dense enumeration indices. LedgerStore owns all of it:

Primary maps:
- lot_hash -> ParkingLot
- user_id -> ParkingInfo (at most one live session per user)

Enumeration indices:
- owner -> number of lots owned
- (owner, ordinal) -> lot_hash, ordinals 0..count-1
- ordinal -> lot_hash over all lots, plus the global count
- lot_hash -> set of user ids currently parked there
- lot_hash -> moment of the last fee/price update

Lots are never removed, so the dense indices are append-only.

transaction() gives unit-of-work semantics: every map is snapshotted on
entry and restored if the block raises, so a failed operation leaves the
store exactly as it was.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import (
    Callable, Dict, Generic, Iterator, List, Optional, Set, Tuple, TypeVar
)
import logging

from ..domain.arithmetic import BALANCE_MAX, CAPACITY_MAX, fits_unsigned
from ..domain.exceptions import (
    AlreadyParkedError, InvalidParametersError, LedgerInvariantError,
    LotNotFoundError, SessionNotFoundError
)
from ..domain.models import Coordinates, ParkingInfo, ParkingLot

K = TypeVar('K')  # Key type
T = TypeVar('T')  # Record type


# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================

class Repository(ABC, Generic[K, T]):
    """Base repository interface"""

    @abstractmethod
    def add(self, key: K, record: T) -> T:
        """Add a record under a new key"""
        pass

    @abstractmethod
    def get(self, key: K) -> Optional[T]:
        """Get a record by key"""
        pass

    @abstractmethod
    def update(self, key: K, record: T) -> T:
        """Replace the record stored under an existing key"""
        pass

    @abstractmethod
    def delete(self, key: K) -> bool:
        """Delete a record by key"""
        pass

    @abstractmethod
    def exists(self, key: K) -> bool:
        pass

    @abstractmethod
    def count(self) -> int:
        pass


# ============================================================================
# IN-MEMORY REPOSITORIES
# ============================================================================

class InMemoryRepository(Repository[K, T]):
    """Dictionary-backed repository"""

    def __init__(self):
        self._storage: Dict[K, T] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    def add(self, key: K, record: T) -> T:
        if key in self._storage:
            raise KeyError(f"Record {key} already exists")
        self._storage[key] = record
        self._logger.debug(f"Added record {key}")
        return record

    def get(self, key: K) -> Optional[T]:
        return self._storage.get(key)

    def update(self, key: K, record: T) -> T:
        if key not in self._storage:
            raise KeyError(f"Record {key} not found")
        self._storage[key] = record
        self._logger.debug(f"Updated record {key}")
        return record

    def delete(self, key: K) -> bool:
        if key in self._storage:
            del self._storage[key]
            self._logger.debug(f"Deleted record {key}")
            return True
        return False

    def exists(self, key: K) -> bool:
        return key in self._storage

    def count(self) -> int:
        return len(self._storage)

    def values(self) -> List[T]:
        return list(self._storage.values())

    def snapshot(self) -> Dict[K, T]:
        return dict(self._storage)

    def restore(self, snapshot: Dict[K, T]) -> None:
        self._storage = dict(snapshot)

    def clear(self):
        """Clear all data (for testing)"""
        self._storage.clear()


# ============================================================================
# LEDGER STORE (Entity Registry)
# ============================================================================

class LedgerStore:
    """
    Keyed storage for parking lots and sessions plus their enumeration
    indices. The only component allowed to mutate ledger state.
    """

    def __init__(self):
        self._lots: InMemoryRepository[str, ParkingLot] = InMemoryRepository()
        self._sessions: InMemoryRepository[str, ParkingInfo] = InMemoryRepository()
        self._owned_count: Dict[str, int] = {}
        self._owned_lots: Dict[Tuple[str, int], str] = {}
        self._all_lots: Dict[int, str] = {}
        self._all_count: int = 0
        self._occupants: Dict[str, Set[str]] = {}
        self._last_update: Dict[str, int] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator['LedgerStore']:
        """Run a block atomically: on any exception every map is restored"""
        snapshot = self._snapshot()
        try:
            yield self
        except BaseException:
            self._restore(snapshot)
            self._logger.debug("Transaction rolled back")
            raise

    def _snapshot(self) -> tuple:
        return (
            self._lots.snapshot(),
            self._sessions.snapshot(),
            dict(self._owned_count),
            dict(self._owned_lots),
            dict(self._all_lots),
            self._all_count,
            {lot: set(users) for lot, users in self._occupants.items()},
            dict(self._last_update),
        )

    def _restore(self, snapshot: tuple) -> None:
        (lots, sessions, owned_count, owned_lots,
         all_lots, all_count, occupants, last_update) = snapshot
        self._lots.restore(lots)
        self._sessions.restore(sessions)
        self._owned_count = owned_count
        self._owned_lots = owned_lots
        self._all_lots = all_lots
        self._all_count = all_count
        self._occupants = occupants
        self._last_update = last_update

    # ------------------------------------------------------------------
    # Lots
    # ------------------------------------------------------------------

    def create_lot(
        self,
        owner: str,
        coordinates: Coordinates,
        capacity: int,
        min_price: int,
        max_price: int,
        lot_hash: str,
        now: int
    ) -> str:
        """
        Register a new parking lot and append it to the owner and global
        indices. The lot starts empty and priced at min_price.

        Raises: InvalidParametersError
        """
        if not fits_unsigned(capacity, CAPACITY_MAX) or capacity == 0:
            raise InvalidParametersError(f"Capacity must be between 1 and {CAPACITY_MAX}: {capacity}")
        if not fits_unsigned(min_price, BALANCE_MAX) or not fits_unsigned(max_price, BALANCE_MAX):
            raise InvalidParametersError("Prices must be non-negative balances")
        if min_price > max_price:
            raise InvalidParametersError(
                f"Minimum price {min_price} exceeds maximum price {max_price}"
            )
        if self._lots.exists(lot_hash):
            raise InvalidParametersError(f"Parking lot {lot_hash} is already registered")

        lot = ParkingLot(
            lot_hash=lot_hash,
            owner=owner,
            coordinates=coordinates,
            capacity=capacity,
            remain=capacity,
            min_price=min_price,
            max_price=max_price,
            current_price=min_price,
        )
        self._lots.add(lot_hash, lot)

        owned = self._owned_count.get(owner, 0)
        self._owned_lots[(owner, owned)] = lot_hash
        self._owned_count[owner] = owned + 1

        self._all_lots[self._all_count] = lot_hash
        self._all_count += 1

        self._occupants[lot_hash] = set()
        self._last_update[lot_hash] = now

        self._logger.debug(f"Registered lot {lot_hash} for {owner} (#{owned} of owner, #{self._all_count - 1} overall)")
        return lot_hash

    def get_lot(self, lot_hash: str) -> ParkingLot:
        lot = self._lots.get(lot_hash)
        if lot is None:
            raise LotNotFoundError(lot_hash)
        return lot

    def lot_exists(self, lot_hash: str) -> bool:
        return self._lots.exists(lot_hash)

    def update_lot(self, lot_hash: str, mutator: Callable[[ParkingLot], ParkingLot]) -> ParkingLot:
        """
        Replace a lot with ``mutator(lot)``. Only remain and current_price
        may change.

        Raises: LotNotFoundError, LedgerInvariantError
        """
        lot = self.get_lot(lot_hash)
        updated = mutator(lot)
        if (updated.lot_hash, updated.owner, updated.capacity, updated.coordinates,
                updated.min_price, updated.max_price) != (
                lot.lot_hash, lot.owner, lot.capacity, lot.coordinates,
                lot.min_price, lot.max_price):
            raise LedgerInvariantError(f"Immutable fields of lot {lot_hash} cannot change")
        if not 0 <= updated.remain <= updated.capacity:
            raise LedgerInvariantError(
                f"Free slots of lot {lot_hash} out of range: {updated.remain}/{updated.capacity}"
            )
        self._lots.update(lot_hash, updated)
        return updated

    def lot_count(self) -> int:
        return self._all_count

    def lot_by_index(self, index: int) -> str:
        try:
            return self._all_lots[index]
        except KeyError:
            raise IndexError(f"No parking lot at index {index}") from None

    def all_lots(self) -> List[ParkingLot]:
        return [self.get_lot(self._all_lots[i]) for i in range(self._all_count)]

    def owned_lot_count(self, owner: str) -> int:
        return self._owned_count.get(owner, 0)

    def owned_lot_by_index(self, owner: str, index: int) -> str:
        try:
            return self._owned_lots[(owner, index)]
        except KeyError:
            raise IndexError(f"{owner} has no parking lot at index {index}") from None

    def lots_of_owner(self, owner: str) -> List[ParkingLot]:
        return [
            self.get_lot(self._owned_lots[(owner, i)])
            for i in range(self.owned_lot_count(owner))
        ]

    def last_update(self, lot_hash: str) -> int:
        if lot_hash not in self._last_update:
            raise LotNotFoundError(lot_hash)
        return self._last_update[lot_hash]

    def set_last_update(self, lot_hash: str, moment: int) -> None:
        if not self._lots.exists(lot_hash):
            raise LotNotFoundError(lot_hash)
        self._last_update[lot_hash] = moment

    # ------------------------------------------------------------------
    # Occupants
    # ------------------------------------------------------------------

    def add_occupant(self, lot_hash: str, user_id: str) -> None:
        if not self._lots.exists(lot_hash):
            raise LotNotFoundError(lot_hash)
        self._occupants[lot_hash].add(user_id)

    def remove_occupant(self, lot_hash: str, user_id: str) -> None:
        """Remove a user from a lot's presence set; absent users are ignored"""
        self._occupants.get(lot_hash, set()).discard(user_id)

    def occupants(self, lot_hash: str) -> Set[str]:
        if not self._lots.exists(lot_hash):
            raise LotNotFoundError(lot_hash)
        return set(self._occupants[lot_hash])

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def set_session(self, user_id: str, info: ParkingInfo) -> None:
        """Open a session. Raises AlreadyParkedError if one is live"""
        if info.user_id != user_id:
            raise LedgerInvariantError(f"Session {info.info_hash} does not belong to {user_id}")
        if self._sessions.exists(user_id):
            raise AlreadyParkedError(f"{user_id} already has an open parking session")
        self._sessions.add(user_id, info)

    def update_session(self, user_id: str, info: ParkingInfo) -> None:
        """Replace a live session with a refreshed copy"""
        current = self.get_session(user_id)
        if (info.info_hash, info.user_id, info.parking_lot_hash, info.enter_time) != (
                current.info_hash, current.user_id, current.parking_lot_hash, current.enter_time):
            raise LedgerInvariantError(f"Immutable fields of session {current.info_hash} cannot change")
        self._sessions.update(user_id, info)

    def get_session(self, user_id: str) -> ParkingInfo:
        info = self._sessions.get(user_id)
        if info is None:
            raise SessionNotFoundError(user_id)
        return info

    def has_session(self, user_id: str) -> bool:
        return self._sessions.exists(user_id)

    def clear_session(self, user_id: str) -> ParkingInfo:
        info = self.get_session(user_id)
        self._sessions.delete(user_id)
        return info

    def session_count(self) -> int:
        return self._sessions.count()

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """
        Verify the indices against the primary maps

        Raises: LedgerInvariantError describing the first violation found
        """
        if self._all_count != self._lots.count() or sorted(self._all_lots) != list(range(self._all_count)):
            raise LedgerInvariantError("Global lot index is not dense")

        total_owned = 0
        for owner, count in self._owned_count.items():
            for ordinal in range(count):
                lot_hash = self._owned_lots.get((owner, ordinal))
                if lot_hash is None:
                    raise LedgerInvariantError(f"Gap in lots of {owner} at ordinal {ordinal}")
                if self.get_lot(lot_hash).owner != owner:
                    raise LedgerInvariantError(f"Lot {lot_hash} indexed under the wrong owner")
            total_owned += count
        if total_owned != len(self._owned_lots) or total_owned != self._all_count:
            raise LedgerInvariantError("Owner index does not cover every lot exactly once")

        for lot in self._lots.values():
            present = self._occupants.get(lot.lot_hash, set())
            if lot.remain != lot.capacity - len(present):
                raise LedgerInvariantError(
                    f"Lot {lot.lot_hash} has {lot.remain} free slots but {len(present)} occupants"
                )
            for user_id in present:
                info = self._sessions.get(user_id)
                if info is None or info.parking_lot_hash != lot.lot_hash:
                    raise LedgerInvariantError(f"{user_id} is listed in lot {lot.lot_hash} without a session there")

        for info in self._sessions.values():
            if info.user_id not in self._occupants.get(info.parking_lot_hash, set()):
                raise LedgerInvariantError(f"Session {info.info_hash} is missing from its lot's occupants")
