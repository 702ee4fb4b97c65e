# File: src/parkledger/main.py
"""
Main entry point for the Parking Ledger
Runs a short demonstration on in-memory collaborators
"""

from typing import Optional
import logging
import os
import sys

from .application.commands import (
    CommandProcessor, CreateParkingLotCommand, EnterParkingLotCommand, LeaveParkingLotCommand
)
from .application.dtos import LedgerSettings
from .application.parking_service import ParkingLedgerServiceFactory
from .infrastructure.clock import ManualClock
from .infrastructure.messaging import EventBus, RecordingEventHandler
from .infrastructure.payments import InMemoryFundsLedger
from .infrastructure.security import StaticIdentityProvider


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Setup application logging configuration"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    return logging.getLogger(__name__)


def run_demo() -> dict:
    """
    Owner opens a 10-slot lot priced 100..200, a driver parks for a
    minute and pays 60 * 110 = 6600.
    """
    logger = logging.getLogger(__name__)

    clock = ManualClock(start=1_000_000)
    funds = InMemoryFundsLedger({"driver": 10_000})
    bus = EventBus()
    audit = RecordingEventHandler()
    bus.subscribe_all(audit)

    service = ParkingLedgerServiceFactory.create_in_memory_service(clock=clock, funds=funds, events=bus)
    identity = StaticIdentityProvider({"owner-token": "owner", "driver-token": "driver"})
    processor = CommandProcessor(service, identity)

    created = processor.execute(CreateParkingLotCommand("owner-token", {
        "latitude": 52_520_008,
        "longitude": 13_404_954,
        "capacity": 10,
        "min_price": 100,
        "max_price": 200,
    }))
    lot_hash = created.data["lot_hash"]

    processor.execute(EnterParkingLotCommand("driver-token", lot_hash))
    clock.advance_seconds(60)
    left = processor.execute(LeaveParkingLotCommand("driver-token"))

    logger.info(f"Driver paid {left.data['fee']}, owner balance {funds.balance('owner')}")
    logger.info(f"{len(audit.events)} events published")
    return {
        "lot_hash": lot_hash,
        "fee": left.data["fee"],
        "owner_balance": funds.balance("owner"),
        "driver_balance": funds.balance("driver"),
        "events": [event.event_type for event in audit.events],
    }


def main():
    """Main entry point"""
    settings = LedgerSettings.from_env()
    setup_logging(settings.log_level)
    try:
        run_demo()
    except Exception as e:
        logging.error(f"Fatal error in main: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
