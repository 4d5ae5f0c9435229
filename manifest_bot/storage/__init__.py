"""SQLAlchemy-backed implementation of the unit-of-work interfaces."""

from .sql import (
    CatalogRepository,
    OrderRepository,
    SqlUnitOfWork,
    UserRepository,
    unit_of_work_factory,
)

__all__ = [
    "CatalogRepository",
    "OrderRepository",
    "SqlUnitOfWork",
    "UserRepository",
    "unit_of_work_factory",
]
