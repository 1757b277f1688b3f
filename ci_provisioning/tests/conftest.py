"""Test fixtures for ci_provisioning tests."""

import re
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from ci_provisioning.lib.certificate_generator import CertificateGenerator
from ci_provisioning.lib.config import ProvisioningConfig
from ci_provisioning.lib.connected_app import ConnectedAppProvisioner
from ci_provisioning.lib.models import Identity, QueryResult, SaveResult
from ci_provisioning.lib.orchestrator import ProvisioningOrchestrator
from ci_provisioning.lib.permission_set import PermissionSetProvisioner

_NAME_FILTER = re.compile(r"Name = '([^']*)'")


class FakeGateway:
    """In-memory org recording every call made against it.

    Behaves like the platform for the calls the provisioners make: duplicate
    permission set assignments are rejected with DUPLICATE_VALUE and created
    connected apps get a consumer key.
    """

    def __init__(self, consumer_key: str = "CONSUMERKEY") -> None:
        self.consumer_key = consumer_key
        self.components: dict[tuple[str, str], dict[str, Any]] = {}
        self.permission_set_ids: dict[str, str] = {}
        self.assignments: set[tuple[str, str]] = set()
        self.identity_info = Identity(user_id="user123", username="user@example.org")
        self.create_failures: dict[str, SaveResult] = {}
        self.delete_failures: dict[str, SaveResult] = {}
        self.calls: list[tuple] = []

    def add_permission_set(self, full_name: str) -> str:
        permission_set_id = f"0PS{len(self.permission_set_ids):012d}"
        self.permission_set_ids[full_name] = permission_set_id
        self.components[("PermissionSet", full_name)] = {"fullName": full_name}
        return permission_set_id

    def add_connected_app(self, full_name: str) -> None:
        self.components[("ConnectedApp", full_name)] = {
            "fullName": full_name,
            "oauthConfig": {"consumerKey": "OLDKEY"},
        }

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def metadata_read(self, kind: str, full_name: str) -> dict[str, Any]:
        self.calls.append(("metadata_read", kind, full_name))
        return dict(self.components.get((kind, full_name), {}))

    def metadata_create(self, kind: str, record: dict[str, Any]) -> SaveResult:
        self.calls.append(("metadata_create", kind, record))
        if kind in self.create_failures:
            return self.create_failures[kind]

        full_name = record["fullName"]
        if kind == "PermissionSet":
            self.add_permission_set(full_name)
        elif kind == "ConnectedApp":
            oauth_config = dict(record["oauthConfig"], consumerKey=self.consumer_key)
            self.components[(kind, full_name)] = dict(record, oauthConfig=oauth_config)
        return SaveResult(success=True, fullName=full_name)

    def metadata_delete(self, kind: str, full_name: str) -> SaveResult:
        self.calls.append(("metadata_delete", kind, full_name))
        if kind in self.delete_failures:
            return self.delete_failures[kind]
        self.components.pop((kind, full_name), None)
        return SaveResult(success=True, fullName=full_name)

    def query(self, soql: str) -> QueryResult:
        self.calls.append(("query", soql))
        match = _NAME_FILTER.search(soql)
        name = match.group(1) if match else ""
        if name not in self.permission_set_ids:
            return QueryResult(totalSize=0, records=[])
        if "COUNT()" in soql:
            return QueryResult(totalSize=1, records=[])
        return QueryResult(
            totalSize=1,
            records=[{"Id": self.permission_set_ids[name], "Name": name}],
        )

    def identity(self) -> Identity:
        self.calls.append(("identity",))
        return self.identity_info

    def record_create(self, kind: str, fields: dict[str, Any]) -> SaveResult:
        self.calls.append(("record_create", kind, fields))
        key = (fields["PermissionSetId"], fields["AssigneeId"])
        if key in self.assignments:
            return SaveResult(
                success=False,
                errors=[
                    {
                        "fields": [],
                        "message": "Duplicate PermissionSetAssignment",
                        "statusCode": "DUPLICATE_VALUE",
                    }
                ],
            )
        self.assignments.add(key)
        return SaveResult(success=True, id=f"0Pa{len(self.assignments):012d}")


@pytest.fixture
def provisioning_config() -> ProvisioningConfig:
    """Return provisioning configuration with default settings."""
    return ProvisioningConfig()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    """Return an empty in-memory org."""
    return FakeGateway()


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Return mocked gateway for call-level assertions."""
    return MagicMock()


@pytest.fixture
def orchestrator(
    fake_gateway: FakeGateway, provisioning_config: ProvisioningConfig
) -> ProvisioningOrchestrator:
    """Return orchestrator wired to the in-memory org."""
    return ProvisioningOrchestrator(
        gateway=fake_gateway,
        generator=CertificateGenerator(provisioning_config),
        permission_sets=PermissionSetProvisioner(fake_gateway),
        connected_apps=ConnectedAppProvisioner(fake_gateway, provisioning_config),
    )


@pytest.fixture
def supplied_cert_file(tmp_path: Path) -> Path:
    """Write a caller-supplied certificate file and return its path."""
    path = tmp_path / "mycert.pem"
    path.write_text("-----BEGIN CERTIFICATE-----\nSUPPLIED\n-----END CERTIFICATE-----\n")
    return path
