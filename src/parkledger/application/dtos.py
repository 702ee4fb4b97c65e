# File: src/parkledger/application/dtos.py
"""
Data Transfer Objects (DTOs) for the Parking Ledger

This module defines DTOs for data transfer between layers:
1. Input DTOs - requests validated before they reach the service
2. Output DTOs - read models of lots, sessions and settlements
3. Error/result DTOs - what the command layer hands back to callers
4. Settings - runtime configuration of the ledger

DTO Principles:
- Validation at creation
- No business logic, only data
- Serialization/deserialization support
"""

from typing import Any, Dict, Mapping, Optional
import json
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..domain.arithmetic import BALANCE_MAX, CAPACITY_MAX, I32_MAX, I32_MIN
from ..domain.models import ParkingInfo, ParkingLot, Settlement


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        data = self.model_dump(**kwargs)
        if exclude_none:
            data = {k: v for k, v in data.items() if v is not None}
        return data

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BaseDTO':
        """Create DTO from dictionary"""
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        """Create DTO from JSON string"""
        data = json.loads(json_str)
        return cls(**data)


# ============================================================================
# INPUT DTOs
# ============================================================================

class CreateParkingLotRequestDTO(BaseDTO):
    """DTO for registering a new parking lot"""
    latitude: int = Field(ge=I32_MIN, le=I32_MAX)
    longitude: int = Field(ge=I32_MIN, le=I32_MAX)
    capacity: int = Field(ge=1, le=CAPACITY_MAX, description="Total slots")
    min_price: int = Field(ge=0, le=BALANCE_MAX)
    max_price: int = Field(ge=0, le=BALANCE_MAX)

    @model_validator(mode='after')
    def check_price_bounds(self) -> 'CreateParkingLotRequestDTO':
        if self.min_price > self.max_price:
            raise ValueError(
                f"min_price ({self.min_price}) must not exceed max_price ({self.max_price})"
            )
        return self


class EnterRequestDTO(BaseDTO):
    """DTO for entering a parking lot"""
    parking_lot_hash: str = Field(min_length=1)

    @field_validator('parking_lot_hash')
    @classmethod
    def strip_hash(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("parking_lot_hash cannot be blank")
        return v


# ============================================================================
# OUTPUT DTOs
# ============================================================================

class ParkingLotDTO(BaseDTO):
    """Read model of a parking lot"""
    lot_hash: str
    owner: str
    latitude: int
    longitude: int
    capacity: int
    remain: int
    min_price: int
    max_price: int
    current_price: int

    @classmethod
    def from_domain(cls, lot: ParkingLot) -> 'ParkingLotDTO':
        return cls(**lot.to_dict())


class ParkingInfoDTO(BaseDTO):
    """Read model of a parking session"""
    info_hash: str
    user_id: str
    parking_lot_hash: str
    enter_time: int
    current_time: int
    current_fee: int

    @classmethod
    def from_domain(cls, info: ParkingInfo) -> 'ParkingInfoDTO':
        return cls(**info.to_dict())


class SettlementDTO(BaseDTO):
    """Outcome of leaving a parking lot"""
    user_id: str
    owner: str
    parking_lot_hash: str
    info_hash: str
    fee: int
    unit_price: int
    enter_time: int
    exit_time: int
    duration_ms: int

    @classmethod
    def from_domain(cls, settlement: Settlement) -> 'SettlementDTO':
        session = settlement.session
        return cls(
            user_id=session.user_id,
            owner=settlement.owner,
            parking_lot_hash=session.parking_lot_hash,
            info_hash=session.info_hash,
            fee=settlement.fee,
            unit_price=settlement.unit_price,
            enter_time=session.enter_time,
            exit_time=settlement.exit_time,
            duration_ms=settlement.duration_ms,
        )


class ErrorResponseDTO(BaseDTO):
    """DTO for error responses"""
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class CommandResultDTO(BaseDTO):
    """Result of executing a ledger command"""
    success: bool
    command_id: str
    command_type: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[ErrorResponseDTO] = None


# ============================================================================
# SETTINGS
# ============================================================================

class LedgerSettings(BaseDTO):
    """Runtime configuration of the parking ledger"""
    time_unit_ms: int = Field(default=1000, ge=1, description="Milliseconds per billed unit")
    redis_url: Optional[str] = None
    events_channel: str = "parkledger.events"
    database_url: Optional[str] = None
    check_invariants: bool = False
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 prefix: str = "PARKLEDGER_") -> 'LedgerSettings':
        """Read settings from PARKLEDGER_* environment variables"""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            key = f"{prefix}{name.upper()}"
            if key in environ:
                values[name] = environ[key]
        return cls(**values)
