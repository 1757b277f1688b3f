"""Remote platform capabilities consumed by the provisioners."""

from typing import Any, Protocol

from .models import Identity, QueryResult, SaveResult


class RemoteResourceGateway(Protocol):
    """Metadata, record and identity operations against the target org.

    Implementations raise RemoteOperationError for transport failures and
    return unsuccessful SaveResults for rejected saves.
    """

    def metadata_read(self, kind: str, full_name: str) -> dict[str, Any]:
        """Read a metadata component; empty dict when it does not exist."""
        ...

    def metadata_create(self, kind: str, record: dict[str, Any]) -> SaveResult:
        ...

    def metadata_delete(self, kind: str, full_name: str) -> SaveResult:
        ...

    def query(self, soql: str) -> QueryResult:
        ...

    def identity(self) -> Identity:
        ...

    def record_create(self, kind: str, fields: dict[str, Any]) -> SaveResult:
        ...


def soql_literal(value: str) -> str:
    """Quote a value as a SOQL string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"
