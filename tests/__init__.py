"""
Test suite for the cooperative order engine

Contains:
- tests/unit/          : Unit tests for individual modules
- tests/factories.py   : Wire-format payload factories and an in-memory store
"""
