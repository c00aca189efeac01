"""
Test Suite

Tests for the Sales Flow back office. Each test gets an in-memory MongoDB
(mongomock) with the production indexes and its own change feed.

Structure:
    tests/
    ├── conftest.py                 # Fixtures and the row seeder
    ├── test_status_rules.py        # Pure transition and roll-up rules
    ├── test_*_service.py           # Service layer
    ├── test_change_feed.py         # Realtime delivery
    └── test_api.py                 # HTTP endpoints

To run tests:
    pytest
    pytest backend/tests/test_task_service.py
"""
