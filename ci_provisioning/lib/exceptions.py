"""Provisioning exceptions."""

from collections.abc import Iterable

from .models import MetadataError, SaveResult


def normalize_errors(
    errors: MetadataError | Iterable[MetadataError] | None,
) -> list[MetadataError]:
    """Return platform errors as a list with list-valued fields."""
    if errors is None:
        return []
    if isinstance(errors, dict):
        errors = [errors]

    normalized: list[MetadataError] = []
    for error in errors:
        fields = error.get("fields") or []
        if isinstance(fields, str):
            fields = [fields] if fields else []
        normalized.append(
            MetadataError(
                fields=list(fields),
                message=str(error.get("message", "")),
                statusCode=str(error.get("statusCode", "")),
            )
        )
    return normalized


class ProvisioningError(Exception):
    """Base exception for all provisioning operations."""


class ConnectedAppExistsError(ProvisioningError):
    """A connected app with the target name exists and replacement was not requested."""

    def __init__(self, full_name: str):
        self.full_name = full_name
        super().__init__(
            f'Connected app "{full_name}" already exists. Please choose a different name.'
        )


class PermissionSetNotFoundError(ProvisioningError):
    """Permission set lookup returned no match."""

    def __init__(self, full_name: str):
        self.full_name = full_name
        super().__init__(f'Permission set "{full_name}" not found')


class AmbiguousPermissionSetError(ProvisioningError):
    """Permission set lookup returned more than one match."""

    def __init__(self, full_name: str, count: int):
        self.full_name = full_name
        self.count = count
        super().__init__(f'Expected one permission set named "{full_name}" but found {count}')


class ReadBackError(ProvisioningError):
    """A create call succeeded but reading the component back lacks the expected field."""

    def __init__(self, full_name: str, field: str):
        self.full_name = full_name
        self.field = field
        super().__init__(f'"{field}" missing from "{full_name}" after successful create')


class RemoteOperationError(ProvisioningError):
    """Remote platform operation failed.

    Attributes:
        operation: Operation that failed (e.g., 'create PermissionSet')
        errors: Structured errors with fields, message and statusCode
    """

    def __init__(
        self,
        operation: str,
        errors: MetadataError | Iterable[MetadataError] | None = None,
    ):
        self.operation = operation
        self.errors = normalize_errors(errors)
        super().__init__(self._render())

    @classmethod
    def from_save_result(cls, operation: str, result: SaveResult) -> "RemoteOperationError":
        return cls(operation, result.get("errors"))

    @property
    def status_codes(self) -> set[str]:
        return {error["statusCode"] for error in self.errors}

    def has_status(self, *codes: str) -> bool:
        """Return True if any error carries one of the given status codes."""
        return bool(self.status_codes.intersection(codes))

    def _render(self) -> str:
        if not self.errors:
            return f"{self.operation} failed"
        # One "fields: message" line per error
        return "\n".join(
            f"{','.join(error['fields'])}: {error['message']}" for error in self.errors
        )


def check_save_result(operation: str, result: SaveResult | list[SaveResult]) -> SaveResult:
    """Return a successful single save result or raise RemoteOperationError.

    Raises:
        RemoteOperationError: If result is a list or reports failure
    """
    if isinstance(result, list):
        raise RemoteOperationError(
            operation,
            MetadataError(
                fields=[],
                message=f"Expected a single save result but got {len(result)}",
                statusCode="UNEXPECTED_RESULT",
            ),
        )
    if not result.get("success"):
        raise RemoteOperationError.from_save_result(operation, result)
    return result
