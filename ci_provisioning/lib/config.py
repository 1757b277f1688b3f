"""Provisioning configuration dataclasses."""

import os
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.x509 import oid

DEFAULT_CONNECTED_APP_NAME = "Continuous Integration"


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name for the self-signed CI certificate."""

    common_name: str = "ci-provisioning"
    organization: str = "CI Provisioning"
    organizational_unit: str = "Continuous Integration"

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        return x509.Name(
            [
                x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name),
                x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
                x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
            ]
        )


@dataclass
class ProvisioningConfig:
    """Fixed certificate and connected app settings."""

    key_size: int = 2048
    validity_days: int = 3650
    subject: DistinguishedName = field(default_factory=DistinguishedName)
    connected_app_description: str = (
        "Connected app used by continuous integration to deploy new versions of metadata"
    )
    callback_url: str = "http://localhost:1717/OauthRedirect"
    scopes: list[str] = field(default_factory=lambda: ["Api", "Web", "RefreshToken"])
    ip_relaxation: str = "BYPASS"
    refresh_token_policy: str = "infinite"
    private_key_filename: str = "server.key"
    certificate_filename: str = "server.crt"


@dataclass
class SalesforceConfig:
    """Connection settings for the target org."""

    instance_url: str
    access_token: str
    api_version: str = "59.0"
    login_url: str = "https://login.salesforce.com"

    @classmethod
    def from_env(
        cls, instance_url: str | None = None, access_token: str | None = None
    ) -> "SalesforceConfig":
        """Build configuration from SF_* environment variables.

        Args:
            instance_url: Takes precedence over SF_INSTANCE_URL when given
            access_token: Takes precedence over SF_ACCESS_TOKEN when given

        Raises:
            ValueError: If no instance URL or access token is available
        """
        instance_url = instance_url or os.environ.get("SF_INSTANCE_URL", "")
        access_token = access_token or os.environ.get("SF_ACCESS_TOKEN", "")
        if not instance_url:
            raise ValueError("SF_INSTANCE_URL is not set")
        if not access_token:
            raise ValueError("SF_ACCESS_TOKEN is not set")
        return cls(
            instance_url=instance_url.rstrip("/"),
            access_token=access_token,
            api_version=os.environ.get("SF_API_VERSION", "59.0"),
            login_url=os.environ.get("SF_LOGIN_URL", "https://login.salesforce.com"),
        )
