"""
parkledger - parking facility ledger with occupancy-based dynamic pricing
"""

from .application.parking_service import ParkingLedgerService, ParkingLedgerServiceFactory
from .domain.models import ParkingInfo, ParkingLot, PriceQuote, Settlement
from .domain.strategies import compute_new_fee
from .infrastructure.repositories import LedgerStore

__version__ = "1.0.0"

__all__ = [
    'ParkingLedgerService',
    'ParkingLedgerServiceFactory',
    'LedgerStore',
    'ParkingLot',
    'ParkingInfo',
    'PriceQuote',
    'Settlement',
    'compute_new_fee',
    '__version__',
]
