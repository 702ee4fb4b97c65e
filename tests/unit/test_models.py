#!/usr/bin/env python3
"""
Domain Layer Unit Tests

Tests for checked arithmetic, ledger records and domain events.
"""

import unittest

from parkledger.domain.arithmetic import (
    I32_MAX, I32_MIN, U64_MAX, U128_MAX,
    checked_add, checked_div, checked_mul, checked_sub, fits_unsigned, narrow
)
from parkledger.domain.exceptions import (
    InsufficientFundsError, FundsTransferError, LotNotFoundError, NotFoundError,
    SessionNotFoundError
)
from parkledger.domain.models import (
    Coordinates, ParkingInfo, ParkingLot, ParkingLotCreatedEvent,
    VehicleEnteredEvent, VehicleLeftEvent
)


class TestCheckedArithmetic(unittest.TestCase):
    """Unit tests for the checked integer helpers"""

    def test_add(self):
        self.assertEqual(checked_add(2, 3), 5)
        self.assertIsNone(checked_add(U64_MAX, 1, U64_MAX))
        self.assertEqual(checked_add(U64_MAX, 1), U64_MAX + 1)

    def test_sub(self):
        self.assertEqual(checked_sub(5, 3), 2)
        self.assertIsNone(checked_sub(3, 5))

    def test_mul(self):
        self.assertEqual(checked_mul(U64_MAX, U64_MAX), U64_MAX * U64_MAX)
        self.assertIsNone(checked_mul(U128_MAX, 2))

    def test_div(self):
        self.assertEqual(checked_div(7, 2), 3)
        self.assertIsNone(checked_div(7, 0))

    def test_narrow(self):
        self.assertEqual(narrow(U64_MAX, U64_MAX), U64_MAX)
        self.assertIsNone(narrow(U64_MAX + 1, U64_MAX))

    def test_fits_unsigned_rejects_bools_and_negatives(self):
        self.assertTrue(fits_unsigned(0, 10))
        self.assertFalse(fits_unsigned(-1, 10))
        self.assertFalse(fits_unsigned(True, 10))
        self.assertFalse(fits_unsigned(1.0, 10))


class TestCoordinates(unittest.TestCase):
    """Unit tests for the Coordinates value object"""

    def test_signed_32_bit_range(self):
        coords = Coordinates(I32_MIN, I32_MAX)
        self.assertEqual(coords.as_tuple(), (I32_MIN, I32_MAX))

    def test_out_of_range(self):
        with self.assertRaises(ValueError):
            Coordinates(I32_MAX + 1, 0)
        with self.assertRaises(ValueError):
            Coordinates(0, 1.5)


class TestParkingLot(unittest.TestCase):
    """Unit tests for the ParkingLot record"""

    def setUp(self):
        self.lot = ParkingLot(
            lot_hash="abc123",
            owner="alice",
            coordinates=Coordinates(10, 20),
            capacity=4,
            remain=4,
            min_price=100,
            max_price=200,
            current_price=100,
        )

    def test_entry_and_exit_return_new_records(self):
        entered = self.lot.with_entry()
        self.assertEqual(entered.remain, 3)
        self.assertEqual(entered.occupied, 1)
        self.assertEqual(self.lot.remain, 4)
        self.assertEqual(entered.with_exit(), self.lot)

    def test_records_are_immutable(self):
        with self.assertRaises(Exception):
            self.lot.remain = 0

    def test_is_full(self):
        lot = self.lot
        for _ in range(4):
            self.assertFalse(lot.is_full)
            lot = lot.with_entry()
        self.assertTrue(lot.is_full)

    def test_to_dict(self):
        data = self.lot.with_price(150).to_dict()
        self.assertEqual(data["current_price"], 150)
        self.assertEqual(data["latitude"], 10)
        self.assertEqual(data["longitude"], 20)


class TestParkingInfo(unittest.TestCase):
    """Unit tests for the ParkingInfo record"""

    def setUp(self):
        self.info = ParkingInfo(
            info_hash="info-1",
            user_id="bob",
            parking_lot_hash="abc123",
            enter_time=1_000,
            current_time=1_000,
        )

    def test_starts_without_fee(self):
        self.assertEqual(self.info.current_fee, 0)
        self.assertEqual(self.info.duration_ms, 0)

    def test_accrue(self):
        info = self.info.with_accrued(31_000, 3_300)
        self.assertEqual(info.current_fee, 3_300)
        self.assertEqual(info.current_time, 31_000)
        self.assertEqual(info.enter_time, 1_000)
        info = info.with_accrued(61_000, 3_300)
        self.assertEqual(info.current_fee, 6_600)
        self.assertEqual(info.duration_ms, 60_000)

    def test_accrue_rejects_going_back(self):
        with self.assertRaises(ValueError):
            self.info.with_accrued(999, 0)
        with self.assertRaises(ValueError):
            self.info.with_accrued(2_000, -1)


class TestDomainEvents(unittest.TestCase):
    """Unit tests for domain event envelopes"""

    def test_lot_created_envelope(self):
        event = ParkingLotCreatedEvent("alice", "abc123", 10, moment=5)
        data = event.to_dict()
        self.assertEqual(data["event_type"], "parking_lot.created")
        self.assertEqual(data["moment"], 5)
        self.assertEqual(data["data"], {"owner": "alice", "lot_hash": "abc123", "capacity": 10})
        self.assertIn("event_id", data)
        self.assertIn("timestamp", data)

    def test_entered_and_left_payloads(self):
        entered = VehicleEnteredEvent("bob", "abc123", "info-1", 110)
        self.assertEqual(entered.to_dict()["data"]["current_price"], 110)

        left = VehicleLeftEvent("bob", "abc123", "info-1", "alice", 6600, 60_000)
        payload = left.to_dict()["data"]
        self.assertEqual(payload["fee"], 6600)
        self.assertEqual(payload["owner"], "alice")
        self.assertEqual(left.event_type, "parking.left")

    def test_event_ids_are_unique(self):
        first = ParkingLotCreatedEvent("alice", "a", 1)
        second = ParkingLotCreatedEvent("alice", "a", 1)
        self.assertNotEqual(first.event_id, second.event_id)


class TestErrorCodes(unittest.TestCase):
    """Error kinds are distinguishable by code"""

    def test_not_found_variants(self):
        self.assertIsInstance(LotNotFoundError("x"), NotFoundError)
        self.assertIsInstance(SessionNotFoundError("y"), NotFoundError)
        self.assertEqual(LotNotFoundError("x").code, "NotFound")
        self.assertEqual(SessionNotFoundError("y").to_dict()["error_code"], "NotFound")

    def test_insufficient_funds_is_a_transfer_failure(self):
        error = InsufficientFundsError("broke")
        self.assertIsInstance(error, FundsTransferError)
        self.assertEqual(error.code, "InsufficientFunds")


if __name__ == '__main__':
    unittest.main()
