#!/usr/bin/env python3
"""
Command Layer Unit Tests

Tests for authentication, request validation and error reporting of the
ledger commands.
"""

import unittest

from parkledger.application.commands import (
    CommandProcessor, CreateParkingLotCommand, EnterParkingLotCommand, LeaveParkingLotCommand
)
from parkledger.application.dtos import CreateParkingLotRequestDTO
from parkledger.application.parking_service import ParkingLedgerServiceFactory
from parkledger.infrastructure.clock import ManualClock
from parkledger.infrastructure.payments import InMemoryFundsLedger
from parkledger.infrastructure.security import SignedOrigin, StaticIdentityProvider

LOT_REQUEST = {
    "latitude": 1,
    "longitude": 2,
    "capacity": 10,
    "min_price": 100,
    "max_price": 200,
}


class TestCommands(unittest.TestCase):
    """Commands executed through the processor"""

    def setUp(self):
        self.clock = ManualClock(start=0)
        self.funds = InMemoryFundsLedger({"driver": 10_000})
        self.service = ParkingLedgerServiceFactory.create_in_memory_service(clock=self.clock, funds=self.funds)
        self.identity = StaticIdentityProvider({"owner-token": "owner", "driver-token": "driver"})
        self.processor = CommandProcessor(self.service, self.identity)

    def create_lot(self, request=None):
        result = self.processor.execute(CreateParkingLotCommand("owner-token", request or LOT_REQUEST))
        self.assertTrue(result.success, result.error)
        return result.data["lot_hash"]

    def test_create_lot_from_mapping(self):
        result = self.processor.execute(CreateParkingLotCommand("owner-token", LOT_REQUEST))
        self.assertTrue(result.success)
        self.assertEqual(result.command_type, "CreateParkingLotCommand")
        self.assertEqual(result.data["owner"], "owner")
        self.assertEqual(result.data["remain"], 10)
        self.assertIsNone(result.error)

    def test_create_lot_from_dto(self):
        request = CreateParkingLotRequestDTO(**LOT_REQUEST)
        result = self.processor.execute(CreateParkingLotCommand(SignedOrigin("owner-2"), request))
        self.assertTrue(result.success)
        self.assertEqual(result.data["owner"], "owner-2")

    def test_create_lot_validation_failure(self):
        for request in (
            {**LOT_REQUEST, "capacity": 0},
            {**LOT_REQUEST, "min_price": 300},
            {k: v for k, v in LOT_REQUEST.items() if k != "capacity"},
        ):
            with self.subTest(request=request):
                result = self.processor.execute(CreateParkingLotCommand("owner-token", request))
                self.assertFalse(result.success)
                self.assertEqual(result.error.error_code, "InvalidParameters")
        self.assertEqual(self.service.list_parking_lots(), [])

    def test_unknown_origin(self):
        result = self.processor.execute(CreateParkingLotCommand("forged", LOT_REQUEST))
        self.assertFalse(result.success)
        self.assertEqual(result.error.error_code, "Unauthorized")
        self.assertEqual(self.service.list_parking_lots(), [])

    def test_signed_origins_can_be_refused(self):
        identity = StaticIdentityProvider(accept_signed=False)
        processor = CommandProcessor(self.service, identity)
        result = processor.execute(LeaveParkingLotCommand(SignedOrigin("driver")))
        self.assertEqual(result.error.error_code, "Unauthorized")

    def test_enter_and_leave(self):
        lot_hash = self.create_lot()

        entered = self.processor.execute(EnterParkingLotCommand("driver-token", f"  {lot_hash} "))
        self.assertTrue(entered.success)
        self.assertEqual(entered.data["parking_lot_hash"], lot_hash)
        self.assertEqual(entered.data["user_id"], "driver")

        self.clock.advance_seconds(60)
        left = self.processor.execute(LeaveParkingLotCommand("driver-token"))
        self.assertTrue(left.success)
        self.assertEqual(left.data["fee"], 6600)
        self.assertEqual(left.data["owner"], "owner")
        self.assertEqual(left.data["duration_ms"], 60_000)
        self.assertEqual(self.funds.balance("owner"), 6600)

    def test_error_codes_distinguish_failures(self):
        lot_hash = self.create_lot({**LOT_REQUEST, "capacity": 1})
        self.identity.register("other-token", "other")

        self.assertTrue(self.processor.execute(EnterParkingLotCommand("driver-token", lot_hash)).success)

        cases = (
            (EnterParkingLotCommand("other-token", lot_hash), "LotFull"),
            (EnterParkingLotCommand("other-token", "missing"), "NotFound"),
            (EnterParkingLotCommand("other-token", "   "), "InvalidParameters"),
            (LeaveParkingLotCommand("other-token"), "NotFound"),
        )
        for command, code in cases:
            with self.subTest(code=code):
                result = self.processor.execute(command)
                self.assertFalse(result.success)
                self.assertEqual(result.error.error_code, code)

    def test_insufficient_funds(self):
        lot_hash = self.create_lot()
        self.identity.register("poor-token", "poor")
        self.processor.execute(EnterParkingLotCommand("poor-token", lot_hash))
        self.clock.advance_seconds(1)

        result = self.processor.execute(LeaveParkingLotCommand("poor-token"))
        self.assertEqual(result.error.error_code, "InsufficientFunds")
        self.assertEqual(self.service.get_session("poor").parking_lot_hash, lot_hash)

    def test_revoked_token(self):
        self.identity.revoke("driver-token")
        result = self.processor.execute(LeaveParkingLotCommand("driver-token"))
        self.assertEqual(result.error.error_code, "Unauthorized")

    def test_history(self):
        lot_hash = self.create_lot()
        self.processor.execute(EnterParkingLotCommand("driver-token", lot_hash))
        self.processor.execute(EnterParkingLotCommand("driver-token", lot_hash))

        history = self.processor.get_history()
        self.assertEqual(len(history), 3)
        self.assertEqual(len(self.processor.get_history(limit=1)), 1)
        self.assertEqual(history[1]["command"]["executed_by"], "driver")
        self.assertIsNotNone(history[1]["command"]["executed_at"])

        failed = self.processor.failed_commands()
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["error_code"], "AlreadyParked")


if __name__ == '__main__':
    unittest.main()
