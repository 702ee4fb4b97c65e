# File: src/parkledger/domain/exceptions.py
"""
Exceptions for the Parking Ledger

Every failure the ledger can report is a subclass of ParkingLedgerError and
carries a stable ``code`` so callers can tell "lot full" apart from
"insufficient funds" without parsing messages.

Hierarchy:
1. Validation - InvalidParametersError
2. Lookup - NotFoundError (LotNotFoundError, SessionNotFoundError)
3. Occupancy - LotFullError, AlreadyParkedError
4. Pricing - PricingError and its arithmetic subclasses
5. Collaborators - FundsTransferError, InsufficientFundsError, UnauthorizedError
6. Internal - LedgerInvariantError
"""

from typing import Any, Dict


class ParkingLedgerError(Exception):
    """Base exception for parking ledger errors"""
    code = "ParkingLedgerError"

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.code, "message": str(self)}


class InvalidParametersError(ParkingLedgerError):
    """Exception for rejected parking lot creation inputs"""
    code = "InvalidParameters"


class NotFoundError(ParkingLedgerError):
    """Exception for unknown lots or sessions"""
    code = "NotFound"


class LotNotFoundError(NotFoundError):
    """Exception when a parking lot hash is not registered"""

    def __init__(self, lot_hash: str):
        super().__init__(f"Parking lot {lot_hash} not found")
        self.lot_hash = lot_hash


class SessionNotFoundError(NotFoundError):
    """Exception when a user has no open parking session"""

    def __init__(self, user_id: str):
        super().__init__(f"No open parking session for {user_id}")
        self.user_id = user_id


class LotFullError(ParkingLedgerError):
    """Exception when a parking lot has no free slots"""
    code = "LotFull"


class AlreadyParkedError(ParkingLedgerError):
    """Exception when a user already holds a live session"""
    code = "AlreadyParked"


# ============================================================================
# PRICING ENGINE ERRORS
# ============================================================================

class PricingError(ParkingLedgerError):
    """Base exception for fee computation failures"""
    code = "PricingError"


class ArithmeticOverflowError(PricingError):
    code = "ArithmeticOverflow"


class ArithmeticUnderflowError(PricingError):
    code = "ArithmeticUnderflow"


class FeeOverflowError(PricingError):
    code = "FeeOverflow"


class TimeOrderingViolationError(PricingError):
    code = "TimeOrderingViolation"


class InvalidPriceRangeError(PricingError):
    code = "InvalidPriceRange"


# ============================================================================
# COLLABORATOR ERRORS
# ============================================================================

class FundsTransferError(ParkingLedgerError):
    """Exception raised by the monetary ledger when a transfer is refused"""
    code = "FundsTransferFailed"


class InsufficientFundsError(FundsTransferError):
    code = "InsufficientFunds"


class UnauthorizedError(ParkingLedgerError):
    """Exception when a request origin cannot be authenticated"""
    code = "Unauthorized"


class LedgerInvariantError(ParkingLedgerError):
    """Exception when the registry indices disagree with the primary maps"""
    code = "LedgerInvariantViolation"
