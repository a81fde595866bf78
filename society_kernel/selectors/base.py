"""
Module: society_kernel.selectors.base
Responsibility: Base class for all read-only query selectors.  Selectors
    are the read side of the kernel: structured access to records and the
    audit log without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain value types.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      commit() or flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
