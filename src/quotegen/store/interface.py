"""
Abstract interface for record store integration.

Defines the contract for record access that all store adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from quotegen.context import ClientContext


@dataclass
class Record:
    """A record returned by a query, fields keyed by API name."""
    record_type: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> Optional[str]:
        return self.fields.get("Id")

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


@dataclass
class QueryResult:
    """Records matching a query, in the order the store returned them."""
    records: List[Record]
    total_size: int
    done: bool = True


def soql_quote(value: str) -> str:
    """Quote a string literal for use inside a SOQL filter."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class RecordStore(ABC):
    """
    Abstract interface for record store access.

    This interface defines the operations needed by the service:
    - Queries returning ordered records
    - Atomic composite commits

    Every call takes the request's ClientContext explicitly; adapters hold
    no per-request credentials.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Prepare shared resources (HTTP connection pool)."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release shared resources."""
        pass

    @abstractmethod
    def data_path(self, context: ClientContext) -> str:
        """Get the versioned API path prefix that subrequest URLs start with."""
        pass

    @abstractmethod
    async def query(self, soql: str, context: ClientContext) -> QueryResult:
        """
        Run a query and return every matching record.

        Args:
            soql: Query string
            context: Request credentials

        Returns:
            All matching records, positionally stable

        Raises:
            TransportError: If the store cannot be reached
            StoreAuthenticationError: If the credentials are rejected
            BackingStoreError: If the store rejects the query
        """
        pass

    @abstractmethod
    async def submit_composite(
        self,
        payload: Dict[str, Any],
        context: ClientContext,
    ) -> Dict[str, Any]:
        """
        Submit one composite request as a single round trip.

        Args:
            payload: Composite request body
            context: Request credentials

        Returns:
            Decoded composite response body

        Raises:
            TransportError: If the round trip fails; the outcome is unknown
            StoreAuthenticationError: If the credentials are rejected
            BackingStoreError: If the store rejects the whole request
        """
        pass
