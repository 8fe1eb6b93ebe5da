"""ORM Models — SQLAlchemy declarative models.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - All models imported here so Base.metadata is complete before create_all
      or autogenerate runs
"""

from gpl_monitor.models.cylinder_session import CylinderSessionRecord  # noqa: F401
