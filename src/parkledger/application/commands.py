# File: src/parkledger/application/commands.py
"""
Command Pattern Implementation for the Parking Ledger

Each user-facing operation is a command carrying the opaque origin of the
request. Executing a command:

1. Authenticates the origin through the IdentityProvider
2. Validates the request payload
3. Calls the ParkingLedgerService
4. Converts the outcome into a CommandResultDTO

Ledger errors never escape a command: they become a failed result whose
error_code names the error kind, so clients can react to "lot full"
differently from "insufficient funds".
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging
import uuid

from pydantic import ValidationError

from ..domain.exceptions import InvalidParametersError, ParkingLedgerError
from .dtos import (
    CommandResultDTO, CreateParkingLotRequestDTO, EnterRequestDTO,
    ErrorResponseDTO, ParkingInfoDTO, ParkingLotDTO, SettlementDTO
)
from .parking_service import ParkingLedgerService
from .ports import IdentityProvider


# ============================================================================
# COMMAND BASE CLASS
# ============================================================================

class Command(ABC):
    """
    Abstract base class for all commands

    A command represents an intent to change the ledger state.
    Commands are named in the imperative (e.g., EnterParkingLotCommand).
    """

    def __init__(self, origin: Any, command_id: Optional[str] = None):
        self.origin = origin
        self.command_id = command_id or str(uuid.uuid4())
        self.executed_at: Optional[datetime] = None
        self.executed_by: Optional[str] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def _run(self, service: ParkingLedgerService, caller: str) -> Dict[str, Any]:
        """Perform the operation for an authenticated caller"""
        pass

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate command parameters
        Returns: (is_valid, error_messages)
        """
        return True, []

    def execute(self, service: ParkingLedgerService, identity: IdentityProvider) -> CommandResultDTO:
        """Authenticate, validate and run the command"""
        try:
            caller = identity.authenticate(self.origin)
            self.executed_by = caller

            is_valid, errors = self.validate()
            if not is_valid:
                raise InvalidParametersError("; ".join(errors))

            data = self._run(service, caller)
            self.executed_at = datetime.now(timezone.utc)
            self.logger.info(f"{self.get_description()} executed for {caller}")
            return CommandResultDTO(
                success=True,
                command_id=self.command_id,
                command_type=self.__class__.__name__,
                data=data,
            )
        except ParkingLedgerError as e:
            self.logger.warning(f"{self.get_description()} failed: {e.code}: {e}")
            return CommandResultDTO(
                success=False,
                command_id=self.command_id,
                command_type=self.__class__.__name__,
                error=ErrorResponseDTO(error_code=e.code, message=str(e)),
            )

    def get_description(self) -> str:
        return self.__class__.__name__.replace("Command", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_id": self.command_id,
            "command_type": self.__class__.__name__,
            "executed_by": self.executed_by,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
        }


def _validation_messages(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or 'request'}: {item['msg']}"
        for item in error.errors()
    ]


# ============================================================================
# LEDGER COMMANDS
# ============================================================================

class CreateParkingLotCommand(Command):
    """Command to register a parking lot owned by the caller"""

    def __init__(
        self,
        origin: Any,
        request: Union[CreateParkingLotRequestDTO, Mapping[str, Any]],
        command_id: Optional[str] = None
    ):
        super().__init__(origin, command_id)
        self.raw_request = request
        self.request: Optional[CreateParkingLotRequestDTO] = (
            request if isinstance(request, CreateParkingLotRequestDTO) else None
        )

    def validate(self) -> Tuple[bool, List[str]]:
        if self.request is not None:
            return True, []
        try:
            self.request = CreateParkingLotRequestDTO.model_validate(dict(self.raw_request))
        except ValidationError as e:
            return False, _validation_messages(e)
        return True, []

    def _run(self, service: ParkingLedgerService, caller: str) -> Dict[str, Any]:
        lot = service.create_parking_lot(
            owner=caller,
            latitude=self.request.latitude,
            longitude=self.request.longitude,
            capacity=self.request.capacity,
            min_price=self.request.min_price,
            max_price=self.request.max_price,
        )
        return ParkingLotDTO.from_domain(lot).to_dict()


class EnterParkingLotCommand(Command):
    """Command to park the caller in a lot"""

    def __init__(self, origin: Any, parking_lot_hash: str, command_id: Optional[str] = None):
        super().__init__(origin, command_id)
        self.parking_lot_hash = parking_lot_hash
        self.request: Optional[EnterRequestDTO] = None

    def validate(self) -> Tuple[bool, List[str]]:
        try:
            self.request = EnterRequestDTO(parking_lot_hash=self.parking_lot_hash)
        except ValidationError as e:
            return False, _validation_messages(e)
        return True, []

    def _run(self, service: ParkingLedgerService, caller: str) -> Dict[str, Any]:
        info = service.enter(caller, self.request.parking_lot_hash)
        return ParkingInfoDTO.from_domain(info).to_dict()

    def get_description(self) -> str:
        return f"EnterParkingLot {self.parking_lot_hash}"


class LeaveParkingLotCommand(Command):
    """Command to close the caller's session and settle the fee"""

    def _run(self, service: ParkingLedgerService, caller: str) -> Dict[str, Any]:
        settlement = service.leave(caller)
        return SettlementDTO.from_domain(settlement).to_dict()


# ============================================================================
# COMMAND PROCESSOR
# ============================================================================

class CommandProcessor:
    """Executes commands one at a time and keeps an audit trail"""

    def __init__(self, service: ParkingLedgerService, identity: IdentityProvider):
        self.service = service
        self.identity = identity
        self.history: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def execute(self, command: Command) -> CommandResultDTO:
        result = command.execute(self.service, self.identity)
        self.history.append({
            "command": command.to_dict(),
            "success": result.success,
            "error_code": result.error.error_code if result.error else None,
        })
        return result

    def get_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.history[-limit:] if limit else list(self.history)

    def failed_commands(self) -> List[Dict[str, Any]]:
        return [entry for entry in self.history if not entry["success"]]
