"""
Repository pattern for voter data access.

Defines the abstract read-only store interface the aggregation engine
executes its statements against. Implementations can be PostgreSQL or an
in-memory fake for tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence


class VoterStore(ABC):
    """
    Abstract parameterized-query execution interface.

    Statements use ``%s`` placeholders; ``params`` holds exactly one value
    per placeholder. The store never interprets the statement.
    """

    @abstractmethod
    def fetch_all(self, statement: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """
        Execute a read-only statement.

        Args:
            statement: SQL text with ``%s`` placeholders
            params: Bound values, in placeholder order

        Returns:
            Rows as column-name -> value mappings

        Raises:
            QueryExecutionError: if the underlying call fails
        """
        pass

    def close(self) -> None:
        """Release any held resources."""

    def __enter__(self) -> "VoterStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
