"""
Test package for the CMS.

Fixtures live in ``tests/conftest.py``: a testing application with an
in-memory SQLite database, users for every role with their JWT headers, and
a post factory. Outgoing HTTP calls (webhooks, AI providers) are patched with
``unittest.mock.patch`` in the individual suites.
"""
