"""Shared fixtures for BDD feature tests.

The ``github`` and ``search_index`` fakes come from the top-level
``tests/conftest.py``; step modules build workers and reconcilers on them.
"""

from __future__ import annotations
