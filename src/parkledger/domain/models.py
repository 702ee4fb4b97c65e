# File: src/parkledger/domain/models.py
"""
Domain Models for the Parking Ledger

This module contains:
1. Value Objects: Coordinates and the PriceQuote produced by pricing
2. Ledger Records: ParkingLot and ParkingInfo, immutable snapshots that the
   store replaces wholesale on every change
3. Domain Events: LotCreated, Entered and Left notifications

Records are frozen dataclasses. A mutation produces a new record through
one of the ``with_*`` helpers, so nothing outside the store can change
ledger state by holding on to a reference.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
import uuid

from .arithmetic import fits_signed32


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)
class Coordinates:
    """
    Value Object: fixed geocoordinates of a parking lot
    Informational only, stored as signed 32-bit integers
    """
    latitude: int
    longitude: int

    def __post_init__(self):
        if not fits_signed32(self.latitude) or not fits_signed32(self.longitude):
            raise ValueError(
                f"Coordinates must be signed 32-bit integers: ({self.latitude}, {self.longitude})"
            )

    def as_tuple(self) -> Tuple[int, int]:
        return (self.latitude, self.longitude)

    def __str__(self) -> str:
        return f"({self.latitude}, {self.longitude})"


@dataclass(frozen=True)
class PriceQuote:
    """Result of a fee computation: accrued fee and the unit price it used"""
    fee: int
    current_price: int


# ============================================================================
# LEDGER RECORDS
# ============================================================================

@dataclass(frozen=True)
class ParkingLot:
    """
    A parking facility

    Invariants (enforced by the store on creation and by the service on
    every entry/exit):
    - capacity > 0, fixed
    - 0 <= remain <= capacity
    - min_price <= current_price <= max_price
    """
    lot_hash: str
    owner: str
    coordinates: Coordinates
    capacity: int
    remain: int
    min_price: int
    max_price: int
    current_price: int

    @property
    def latitude(self) -> int:
        return self.coordinates.latitude

    @property
    def longitude(self) -> int:
        return self.coordinates.longitude

    @property
    def occupied(self) -> int:
        """Number of slots currently taken"""
        return self.capacity - self.remain

    @property
    def is_full(self) -> bool:
        return self.remain == 0

    def with_entry(self) -> 'ParkingLot':
        return replace(self, remain=self.remain - 1)

    def with_exit(self) -> 'ParkingLot':
        return replace(self, remain=self.remain + 1)

    def with_price(self, current_price: int) -> 'ParkingLot':
        return replace(self, current_price=current_price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_hash": self.lot_hash,
            "owner": self.owner,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "capacity": self.capacity,
            "remain": self.remain,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "current_price": self.current_price,
        }

    def __str__(self) -> str:
        return f"ParkingLot {self.lot_hash[:8]} ({self.remain}/{self.capacity} free, price {self.current_price})"


@dataclass(frozen=True)
class ParkingInfo:
    """
    A user's parking session

    ``current_time`` is the moment of the last fee recomputation and
    ``current_fee`` the fee accrued up to that moment.
    """
    info_hash: str
    user_id: str
    parking_lot_hash: str
    enter_time: int
    current_time: int
    current_fee: int = 0

    def with_accrued(self, moment: int, fee: int) -> 'ParkingInfo':
        """Advance the session to ``moment`` having accrued ``fee`` since the last update"""
        if moment < self.current_time:
            raise ValueError("Session time cannot move backwards")
        if fee < 0:
            raise ValueError("Accrued fee cannot be negative")
        return replace(self, current_time=moment, current_fee=self.current_fee + fee)

    @property
    def duration_ms(self) -> int:
        return self.current_time - self.enter_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "info_hash": self.info_hash,
            "user_id": self.user_id,
            "parking_lot_hash": self.parking_lot_hash,
            "enter_time": self.enter_time,
            "current_time": self.current_time,
            "current_fee": self.current_fee,
        }


@dataclass(frozen=True)
class Settlement:
    """Outcome of closing a session: what was paid, to whom, for how long"""
    session: ParkingInfo
    owner: str
    fee: int
    exit_time: int
    unit_price: int

    @property
    def duration_ms(self) -> int:
        return self.exit_time - self.session.enter_time


# ============================================================================
# DOMAIN EVENTS (for event-driven architecture)
# ============================================================================

class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the ledger
    """
    event_type = "ledger.event"

    def __init__(self, moment: Optional[int] = None):
        self.event_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc)
        self.moment = moment
        self.version = "1.0"

    @abstractmethod
    def payload(self) -> Dict[str, Any]:
        """Event-specific data"""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "event_type": self.event_type,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "moment": self.moment,
            "version": self.version,
            "data": self.payload(),
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp}"


class ParkingLotCreatedEvent(DomainEvent):
    """Event raised when a parking lot is registered"""
    event_type = "parking_lot.created"

    def __init__(self, owner: str, lot_hash: str, capacity: int, moment: Optional[int] = None):
        super().__init__(moment)
        self.owner = owner
        self.lot_hash = lot_hash
        self.capacity = capacity

    def payload(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "lot_hash": self.lot_hash,
            "capacity": self.capacity,
        }


class VehicleEnteredEvent(DomainEvent):
    """Event raised when a user enters a parking lot"""
    event_type = "parking.entered"

    def __init__(self, user_id: str, lot_hash: str, info_hash: str,
                 current_price: int, moment: Optional[int] = None):
        super().__init__(moment)
        self.user_id = user_id
        self.lot_hash = lot_hash
        self.info_hash = info_hash
        self.current_price = current_price

    def payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "lot_hash": self.lot_hash,
            "info_hash": self.info_hash,
            "current_price": self.current_price,
        }


class VehicleLeftEvent(DomainEvent):
    """Event raised when a user leaves and the session is settled"""
    event_type = "parking.left"

    def __init__(self, user_id: str, lot_hash: str, info_hash: str, owner: str,
                 fee: int, duration_ms: int, moment: Optional[int] = None):
        super().__init__(moment)
        self.user_id = user_id
        self.lot_hash = lot_hash
        self.info_hash = info_hash
        self.owner = owner
        self.fee = fee
        self.duration_ms = duration_ms

    def payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "lot_hash": self.lot_hash,
            "info_hash": self.info_hash,
            "owner": self.owner,
            "fee": self.fee,
            "duration_ms": self.duration_ms,
        }
