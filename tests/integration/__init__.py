"""
Integration tests for the Parking Ledger

Scenarios that drive the command layer, the service, the store and the
funds ledgers together.
"""
