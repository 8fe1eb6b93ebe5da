"""Database Declarations — SQLAlchemy Base shared by models and alembic.

Invariants:
    - All ORM models inherit from db.base.Base

Design Decisions:
    - asyncpg driver for PostgreSQL (native async, no thread pool overhead)
"""
