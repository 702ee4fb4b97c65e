# File: src/parkledger/infrastructure/security.py
"""
Origin authentication adapters

The ledger never checks signatures itself. A request origin is either an
opaque token looked up in a registry of known callers, or a SignedOrigin
whose signature has already been verified upstream.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from ..domain.exceptions import UnauthorizedError


@dataclass(frozen=True)
class SignedOrigin:
    """Origin of a request whose signature was verified by the caller's transport"""
    account_id: str


class StaticIdentityProvider:
    """Identity provider backed by a fixed token -> account mapping"""

    def __init__(self, tokens: Optional[Dict[str, str]] = None, accept_signed: bool = True):
        self._tokens: Dict[str, str] = dict(tokens or {})
        self.accept_signed = accept_signed
        self._logger = logging.getLogger(self.__class__.__name__)

    def register(self, token: str, account_id: str) -> None:
        self._tokens[token] = account_id

    def revoke(self, token: str) -> None:
        self._tokens.pop(token, None)

    def authenticate(self, origin: Any) -> str:
        if isinstance(origin, SignedOrigin):
            if self.accept_signed and origin.account_id:
                return origin.account_id
            raise UnauthorizedError("Signed origins are not accepted")

        if isinstance(origin, str) and origin in self._tokens:
            return self._tokens[origin]

        self._logger.warning("Rejected request with an unknown origin")
        raise UnauthorizedError("Origin could not be authenticated")
