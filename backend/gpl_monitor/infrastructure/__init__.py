"""Infrastructure Layer — session stores, database access, clock, and logging.

Invariants:
    - Every store failure surfaces as PersistenceError (core/errors.py)
    - Stores implement core.repository_protocols.SessionStore

Design Decisions:
    - One module per store strategy; failover composes the other two
"""
