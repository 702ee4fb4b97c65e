# File: src/parkledger/infrastructure/factories.py
"""
Factories for ledger identifiers and domain objects

Identifiers are content-derived: a blake2b-256 digest over the canonical
JSON of the entity payload plus a per-generator nonce, so two lots with
identical parameters still receive distinct keys.
"""

from typing import Any, Dict, Optional
import hashlib
import itertools
import json
import logging

from ..application.ports import IdentifierGenerator
from ..domain.models import Coordinates, ParkingInfo


class Blake2IdentifierGenerator:
    """Content-derived opaque keys for lots and sessions"""

    def __init__(self, salt: str = "", digest_size: int = 32):
        self.salt = salt
        self.digest_size = digest_size
        self._nonce = itertools.count()
        self._logger = logging.getLogger(self.__class__.__name__)

    def _digest(self, kind: str, payload: Dict[str, Any]) -> str:
        material = json.dumps(
            {"kind": kind, "salt": self.salt, "nonce": next(self._nonce), "payload": payload},
            sort_keys=True,
            default=str,
        )
        return hashlib.blake2b(material.encode("utf-8"), digest_size=self.digest_size).hexdigest()

    def new_lot_hash(self, owner: str, payload: Dict[str, Any]) -> str:
        lot_hash = self._digest("parking_lot", {"owner": owner, **payload})
        self._logger.debug(f"Generated lot hash {lot_hash} for {owner}")
        return lot_hash

    def new_info_hash(self, user_id: str, lot_hash: str, moment: int) -> str:
        return self._digest("parking_info", {"user_id": user_id, "lot_hash": lot_hash, "moment": moment})


class ParkingInfoFactory:
    """Creates fresh sessions with a generated info hash"""

    def __init__(self, identifiers: Optional[IdentifierGenerator] = None):
        self.identifiers = identifiers or Blake2IdentifierGenerator()

    def create(self, user_id: str, lot_hash: str, moment: int) -> ParkingInfo:
        return ParkingInfo(
            info_hash=self.identifiers.new_info_hash(user_id, lot_hash, moment),
            user_id=user_id,
            parking_lot_hash=lot_hash,
            enter_time=moment,
            current_time=moment,
            current_fee=0,
        )


def lot_payload(coordinates: Coordinates, capacity: int, min_price: int, max_price: int) -> Dict[str, Any]:
    """Canonical content of a lot used to derive its key"""
    return {
        "latitude": coordinates.latitude,
        "longitude": coordinates.longitude,
        "capacity": capacity,
        "min_price": min_price,
        "max_price": max_price,
    }
