"""
Drops backend test suite.

- tests/unit/         : pure helpers and the filesystem content store
- tests/integration/  : services, maintenance and HTTP against a per-test SQLite database

Run a subset with markers, e.g. `pytest -m "not api"`.
"""
