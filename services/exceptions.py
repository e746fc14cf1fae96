"""
Exceptions raised by the conquest pipeline before any external call.

Hierarchy:
- ConquestError
  - InvalidBatch (input errors; rejected synchronously, no job created)
    - EmptyBatch
    - TooManyCells
    - InvalidCell
    - CellNotFound
  - NotCellOwner
  - RateLimited (admission errors)
"""
from typing import Optional


class ConquestError(Exception):
    """Base exception for conquest pipeline errors."""
    retryable: bool = False


class InvalidBatch(ConquestError):
    """The request was rejected during validation."""


class EmptyBatch(InvalidBatch):
    def __init__(self):
        super().__init__("cells array is required and must not be empty")


class TooManyCells(InvalidBatch):
    def __init__(self, count: int, limit: int):
        super().__init__(f"Maximum {limit} cells per request, got {count}")
        self.count = count
        self.limit = limit


class InvalidCell(InvalidBatch):
    def __init__(self, message: str, x=None, y=None):
        super().__init__(message)
        self.x = x
        self.y = y


class CellNotFound(InvalidBatch):
    def __init__(self, x: int, y: int):
        super().__init__(f"Cell ({x}, {y}) not found")
        self.x = x
        self.y = y


class NotCellOwner(ConquestError):
    def __init__(self, actor_id: str, cells: list[tuple[int, int]]):
        listed = ", ".join(f"({x}, {y})" for x, y in cells[:10])
        super().__init__(f"{actor_id} does not own cells {listed}")
        self.actor_id = actor_id
        self.cells = cells


class RateLimited(ConquestError):
    retryable = True

    def __init__(self, identifier: str, reset_at: Optional[float]):
        super().__init__(f"Rate limit exceeded for {identifier}")
        self.identifier = identifier
        self.reset_at = reset_at
