"""
Module: tool_kernel.selectors.base
Responsibility: Abstract base class for query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Session ownership: the caller owns the session and its transaction.
    - Row locks (``for_update=True``) are taken only when the calling service
      is about to mutate the rows, always in primary-key order.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from tool_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def coerce_uuid(value: UUID | str) -> UUID | None:
    """Parse an id argument; None when it is not a valid UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Selectors accept a Session from the caller and perform read-only
    queries.  They return ORM instances to services, which mutate them
    within the same transaction; DTO conversion happens at the public
    boundary.
    """

    def __init__(self, session: Session):
        self.session = session
