"""
Supply Tracker Test Suite.

Test Categories:
- Unit Tests (tests/unit): ledger gateways, history reconstruction,
  repository, transitions, registration, queries, session, config
- API Tests (tests/test_api.py): Flask endpoints over the simulated ledger
"""
