"""
LifeRPG XP Engine Test Suite
============================

Test Organization
-----------------
- tests/unit/          : Pure functions, validators, read models (no database)
- tests/services/      : Services against a throwaway SQLite database
- tests/integration/   : PostgreSQL via testcontainers (needs Docker)

Run ``pytest -m "not integration"`` for the fast suite. All tests follow
the Arrange / Act / Assert layout.
"""
