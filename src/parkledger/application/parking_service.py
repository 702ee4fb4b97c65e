# File: src/parkledger/application/parking_service.py
"""
Parking Ledger Application Service

This module implements the lifecycle controller of the ledger. It
orchestrates the three user-facing use cases on top of the store and the
pricing engine:

1. Create a parking lot
2. Enter a parking lot
3. Leave a parking lot, settling the fee with the lot owner

Key Principles:
- Each use case runs inside one store transaction; any failure leaves the
  ledger exactly as it was
- The funds transfer is the last fallible step, so money only moves when
  every other change is certain to commit
- Events are published after commit and their failures are only logged
- The service never retries; every error reaches the caller unchanged
"""

from typing import Dict, List, Optional
import logging

from ..domain.arithmetic import BALANCE_MAX, checked_add
from ..domain.exceptions import (
    FeeOverflowError, InvalidParametersError, LotFullError,
    AlreadyParkedError, ParkingLedgerError
)
from ..domain.models import (
    Coordinates, DomainEvent, ParkingInfo, ParkingLot, PriceQuote, Settlement,
    ParkingLotCreatedEvent, VehicleEnteredEvent, VehicleLeftEvent
)
from ..domain.strategies import OccupancyPricingStrategy, PricingStrategy
from ..infrastructure.clock import ManualClock, SystemClock
from ..infrastructure.factories import Blake2IdentifierGenerator, ParkingInfoFactory, lot_payload
from ..infrastructure.messaging import CompositeEventSink, EventBus, RedisEventSink
from ..infrastructure.payments import InMemoryFundsLedger, SQLAlchemyFundsLedger
from ..infrastructure.repositories import LedgerStore
from .dtos import LedgerSettings
from .ports import Clock, EventSink, FundsLedger, IdentifierGenerator


# ============================================================================
# MAIN PARKING LEDGER SERVICE
# ============================================================================

class ParkingLedgerService:
    """
    Main application service for the parking ledger

    The store is passed in explicitly and is the only place state lives;
    the service reads records, computes, and writes the results back inside
    a transaction.
    """

    def __init__(
        self,
        store: LedgerStore,
        funds: FundsLedger,
        clock: Clock,
        identifiers: Optional[IdentifierGenerator] = None,
        events: Optional[EventSink] = None,
        pricing: Optional[PricingStrategy] = None,
        check_invariants: bool = False
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.store = store
        self.funds = funds
        self.clock = clock
        self.identifiers = identifiers or Blake2IdentifierGenerator()
        self.events = events
        self.pricing = pricing or OccupancyPricingStrategy()
        self.check_invariants = check_invariants
        self._sessions = ParkingInfoFactory(self.identifiers)

        self.logger.info(f"ParkingLedgerService initialized with {self.pricing}")

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    def create_parking_lot(
        self,
        owner: str,
        latitude: int,
        longitude: int,
        capacity: int,
        min_price: int,
        max_price: int
    ) -> ParkingLot:
        """
        Register a parking lot owned by ``owner``

        Raises: InvalidParametersError
        """
        now = self.clock.now()
        try:
            coordinates = Coordinates(latitude, longitude)
        except ValueError as e:
            raise InvalidParametersError(str(e)) from e

        lot_hash = self.identifiers.new_lot_hash(
            owner, lot_payload(coordinates, capacity, min_price, max_price)
        )
        try:
            with self.store.transaction():
                self.store.create_lot(owner, coordinates, capacity, min_price, max_price, lot_hash, now)
                self._verify()
                lot = self.store.get_lot(lot_hash)
        except ParkingLedgerError as e:
            self.logger.warning(f"Parking lot creation rejected for {owner}: {e}")
            raise

        self.logger.info(f"Parking lot {lot_hash} created by {owner} with {capacity} slots")
        self._publish(ParkingLotCreatedEvent(owner, lot_hash, capacity, moment=now))
        return lot

    def enter(self, user_id: str, lot_hash: str) -> ParkingInfo:
        """
        Park ``user_id`` in a lot

        Use Case: Entry
        1. Check the lot exists and has a free slot
        2. Check the user has no open session
        3. Take a slot, register the occupant, open the session
        4. Reprice the lot for its new occupancy

        Raises: LotNotFoundError, LotFullError, AlreadyParkedError, PricingError
        """
        now = self.clock.now()
        try:
            with self.store.transaction():
                lot = self.store.get_lot(lot_hash)
                if lot.is_full:
                    raise LotFullError(f"Parking lot {lot_hash} has no free slots")
                if self.store.has_session(user_id):
                    raise AlreadyParkedError(f"{user_id} already has an open parking session")

                last_update = self.store.last_update(lot_hash)
                lot = self.store.update_lot(lot_hash, lambda l: l.with_entry())
                self.store.add_occupant(lot_hash, user_id)

                info = self._sessions.create(user_id, lot_hash, now)
                self.store.set_session(user_id, info)

                quote = self.pricing.quote(lot, last_update, now)
                lot = self.store.update_lot(lot_hash, lambda l: l.with_price(quote.current_price))
                self.store.set_last_update(lot_hash, now)
                self._verify()
        except ParkingLedgerError as e:
            self.logger.warning(f"Entry rejected for {user_id} at {lot_hash}: {e}")
            raise

        self.logger.info(
            f"{user_id} entered {lot_hash} ({lot.remain}/{lot.capacity} free, price {lot.current_price})"
        )
        self._publish(VehicleEnteredEvent(user_id, lot_hash, info.info_hash, lot.current_price, moment=now))
        return info

    def refresh_session(self, user_id: str) -> ParkingInfo:
        """
        Accrue the fee of an open session up to now without closing it

        Only whole billing units are accrued; the remainder is carried to
        the next refresh or to leave().

        Raises: SessionNotFoundError, LotNotFoundError, PricingError
        """
        now = self.clock.now()
        try:
            with self.store.transaction():
                info = self.store.get_session(user_id)
                lot = self.store.get_lot(info.parking_lot_hash)
                quote = self.pricing.quote(lot, info.current_time, now)
                if checked_add(info.current_fee, quote.fee, BALANCE_MAX) is None:
                    raise FeeOverflowError(f"Accrued fee of {user_id} exceeds the balance range")
                info = info.with_accrued(self.pricing.billed_until(info.current_time, now), quote.fee)
                self.store.update_session(user_id, info)
                self._verify()
        except ParkingLedgerError as e:
            self.logger.warning(f"Session refresh rejected for {user_id}: {e}")
            raise

        self.logger.debug(f"Session {info.info_hash} accrued {info.current_fee} so far")
        return info

    def quote_fee(self, user_id: str) -> PriceQuote:
        """What leave() would charge right now, without changing anything"""
        now = self.clock.now()
        info = self.store.get_session(user_id)
        lot = self.store.get_lot(info.parking_lot_hash)
        quote = self.pricing.quote(lot, info.current_time, now)
        total = checked_add(info.current_fee, quote.fee, BALANCE_MAX)
        if total is None:
            raise FeeOverflowError(f"Accrued fee of {user_id} exceeds the balance range")
        return PriceQuote(fee=total, current_price=quote.current_price)

    def leave(self, user_id: str) -> Settlement:
        """
        Close the session of ``user_id`` and pay the lot owner

        Use Case: Exit
        1. Price the session from its last update to now
        2. Price the lot for its post-exit occupancy
        3. Free the slot, drop the occupant, clear the session
        4. Transfer the fee from the user to the owner

        If the transfer fails the session stays open and nothing changes.

        Raises: SessionNotFoundError, PricingError, FundsTransferError
        """
        now = self.clock.now()
        try:
            with self.store.transaction():
                info = self.store.get_session(user_id)
                lot_hash = info.parking_lot_hash
                lot = self.store.get_lot(lot_hash)

                quote = self.pricing.quote(lot, info.current_time, now)
                fee = checked_add(info.current_fee, quote.fee, BALANCE_MAX)
                if fee is None:
                    raise FeeOverflowError(f"Final fee of {user_id} exceeds the balance range")

                exit_price = self.pricing.quote_unit_price(lot.with_exit())

                lot = self.store.update_lot(lot_hash, lambda l: l.with_exit().with_price(exit_price))
                self.store.remove_occupant(lot_hash, user_id)
                self.store.clear_session(user_id)
                self.store.set_last_update(lot_hash, now)
                self._verify()

                # Last statement of the transaction: a refused transfer still rolls the store back
                self.funds.transfer(user_id, lot.owner, fee)
        except ParkingLedgerError as e:
            self.logger.warning(f"Exit rejected for {user_id}: {e}")
            raise

        settlement = Settlement(
            session=info, owner=lot.owner, fee=fee, exit_time=now, unit_price=quote.current_price
        )
        self.logger.info(f"{user_id} left {lot_hash} and paid {fee} to {lot.owner}")
        self._publish(VehicleLeftEvent(
            user_id, lot_hash, info.info_hash, lot.owner, fee, settlement.duration_ms, moment=now
        ))
        return settlement

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_parking_lot(self, lot_hash: str) -> ParkingLot:
        return self.store.get_lot(lot_hash)

    def get_session(self, user_id: str) -> ParkingInfo:
        return self.store.get_session(user_id)

    def list_parking_lots(self) -> List[ParkingLot]:
        return self.store.all_lots()

    def list_owner_parking_lots(self, owner: str) -> List[ParkingLot]:
        return self.store.lots_of_owner(owner)

    def list_occupants(self, lot_hash: str) -> List[str]:
        return sorted(self.store.occupants(lot_hash))

    def get_dashboard_data(self) -> Dict[str, int]:
        lots = self.store.all_lots()
        return {
            "parking_lots": len(lots),
            "total_capacity": sum(lot.capacity for lot in lots),
            "occupied_slots": sum(lot.occupied for lot in lots),
            "open_sessions": self.store.session_count(),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _verify(self) -> None:
        if self.check_invariants:
            self.store.check_invariants()

    def _publish(self, event: DomainEvent) -> None:
        if self.events is None:
            return
        try:
            self.events.publish(event)
        except Exception as e:
            self.logger.error(f"Failed to publish {event.event_type}: {e}", exc_info=True)


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ParkingLedgerServiceFactory:
    """Factory for creating parking ledger service instances"""

    @staticmethod
    def create_default_service(settings: Optional[LedgerSettings] = None) -> ParkingLedgerService:
        """Create a service wired from settings (defaults: in-memory funds, system clock)"""
        settings = settings or LedgerSettings()

        if settings.database_url:
            funds = SQLAlchemyFundsLedger.from_url(settings.database_url)
        else:
            funds = InMemoryFundsLedger()

        events = CompositeEventSink([EventBus()])
        if settings.redis_url:
            events.add(RedisEventSink(settings.redis_url, channel=settings.events_channel))

        return ParkingLedgerService(
            store=LedgerStore(),
            funds=funds,
            clock=SystemClock(),
            identifiers=Blake2IdentifierGenerator(),
            events=events,
            pricing=OccupancyPricingStrategy(settings.time_unit_ms),
            check_invariants=settings.check_invariants,
        )

    @staticmethod
    def create_service_with_config(config: Dict[str, object]) -> ParkingLedgerService:
        """Create a service from a plain configuration dictionary"""
        return ParkingLedgerServiceFactory.create_default_service(LedgerSettings.from_dict(config))

    @staticmethod
    def create_in_memory_service(
        clock: Optional[Clock] = None,
        funds: Optional[FundsLedger] = None,
        events: Optional[EventSink] = None
    ) -> ParkingLedgerService:
        """Create a fully in-memory service, with invariant checks on, for tests and demos"""
        return ParkingLedgerService(
            store=LedgerStore(),
            funds=funds if funds is not None else InMemoryFundsLedger(),
            clock=clock if clock is not None else ManualClock(),
            identifiers=Blake2IdentifierGenerator(),
            events=events if events is not None else EventBus(),
            check_invariants=True,
        )
