"""Repository interfaces and implementations.

This package defines abstract repository interfaces for the circulation
entities and concrete implementations: the in-memory adapters under
:mod:`circulation.repositories.memory` and the SQLite adapters under
:mod:`circulation.repositories.sqlite`.
"""
