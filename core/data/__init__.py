"""Data layer - transaction scope over the persistence adapters."""

from .uow import UnitOfWork, create_uow

__all__ = [
    "create_uow",
    "UnitOfWork",
]
