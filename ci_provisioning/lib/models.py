"""Data models for CI provisioning."""

from dataclasses import dataclass
from pathlib import Path
from typing import NotRequired, TypedDict


class MetadataError(TypedDict):
    """Structured error returned by the platform for a failed operation."""

    fields: str | list[str]
    message: str
    statusCode: str


class SaveResult(TypedDict):
    """Result of a metadata or record create/delete call."""

    success: bool
    fullName: NotRequired[str]
    id: NotRequired[str]
    errors: NotRequired[MetadataError | list[MetadataError]]


class QueryResult(TypedDict):
    """SOQL query result."""

    totalSize: int
    records: list[dict]


class Identity(TypedDict):
    """Identity of the authenticated operator."""

    user_id: str
    username: str


class PermissionSetMetadata(TypedDict):
    """PermissionSet metadata component."""

    fullName: str
    label: str
    description: str


class ConnectedAppOAuthConfig(TypedDict):
    """OAuth settings of a connected app."""

    callbackUrl: str
    certificate: str
    isAdminApproved: bool
    isConsumerSecretOptional: bool
    scopes: list[str]


class ConnectedAppOAuthPolicy(TypedDict):
    """OAuth policy of a connected app."""

    ipRelaxation: str
    refreshTokenPolicy: str


class ConnectedAppMetadata(TypedDict):
    """ConnectedApp metadata component."""

    fullName: str
    label: str
    description: str
    contactEmail: str
    permissionSetName: str
    oauthConfig: ConnectedAppOAuthConfig
    oauthPolicy: ConnectedAppOAuthPolicy


@dataclass(frozen=True)
class CertificateMaterial:
    """PEM encoded certificate and, when generated locally, its private key.

    private_key_pem is None when the certificate was supplied by the caller.
    """

    certificate_pem: str
    private_key_pem: str | None = None


@dataclass
class ProvisioningRequest:
    """Input for a provisioning run."""

    connected_app_name: str
    permission_set_name: str | None = None
    force: bool = False
    certificate_file: Path | None = None

    @property
    def effective_permission_set_name(self) -> str:
        """Permission set label, defaulting to the connected app label."""
        return self.permission_set_name or self.connected_app_name


@dataclass
class ProvisioningResult:
    """Result from a provisioning run."""

    full_name: str
    consumer_key: str
    certificate_pem: str
    permission_set_name: str
    username: str
    private_key_pem: str | None = None

    def to_json(self) -> dict[str, str]:
        """Return the result as a JSON-serializable dict."""
        result = {
            "fullName": self.full_name,
            "consumerKey": self.consumer_key,
            "certificatePem": self.certificate_pem,
            "permissionSetName": self.permission_set_name,
            "username": self.username,
        }
        if self.private_key_pem is not None:
            result["privateKeyPem"] = self.private_key_pem
        return result
