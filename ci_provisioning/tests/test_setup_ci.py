"""Tests for the setup_ci script."""

import json
import stat
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeGateway

from ci_provisioning.lib.cert_utils import deserialize_certificate, deserialize_private_key
from ci_provisioning.lib.config import ProvisioningConfig, SalesforceConfig
from ci_provisioning.lib.models import ProvisioningResult
from ci_provisioning.scripts.setup_ci import (
    build_parser,
    file_writing_hooks,
    follow_up_instructions,
    main,
    resolve_salesforce_config,
)

CONNECTION_ARGS = ["--instance-url", "https://example.my.salesforce.com", "--access-token", "TOKEN"]


def _result(private_key_pem: str | None = "KEY") -> ProvisioningResult:
    return ProvisioningResult(
        full_name="Continuous_Integration",
        consumer_key="APPKEY",
        certificate_pem="CERT",
        private_key_pem=private_key_pem,
        permission_set_name="Continuous_Integration",
        username="user@example.org",
    )


class TestMain:
    """Tests for main."""

    def test_happy_path_writes_key_and_certificate(
        self, fake_gateway: FakeGateway, tmp_path: Path
    ) -> None:
        """Should exit 0 and write a matching server.key and server.crt."""
        exit_code = main([*CONNECTION_ARGS, "--output-dir", str(tmp_path)], gateway=fake_gateway)

        assert exit_code == 0
        key_path = tmp_path / "server.key"
        cert_path = tmp_path / "server.crt"
        private_key = deserialize_private_key(key_path.read_text())
        certificate = deserialize_certificate(cert_path.read_text())
        assert (
            certificate.public_key().public_numbers()  # type: ignore[union-attr]
            == private_key.public_key().public_numbers()
        )
        assert stat.S_IMODE(key_path.stat().st_mode) == 0o600

        app = fake_gateway.calls_to("metadata_create")[-1][2]
        assert app["oauthConfig"]["certificate"] == cert_path.read_text()

    def test_json_output(
        self, fake_gateway: FakeGateway, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """--json should print the result object."""
        exit_code = main(
            [*CONNECTION_ARGS, "--output-dir", str(tmp_path), "--json", "--name", "My App"],
            gateway=fake_gateway,
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["fullName"] == "My_App"
        assert output["consumerKey"] == "CONSUMERKEY"
        assert output["permissionSetName"] == "My_App"
        assert output["privateKeyPem"] == (tmp_path / "server.key").read_text()

    def test_supplied_certificate_skips_key_generation(
        self, fake_gateway: FakeGateway, tmp_path: Path, supplied_cert_file: Path
    ) -> None:
        """With --cert-file nothing should be written to the output directory."""
        output_dir = tmp_path / "out"

        exit_code = main(
            [*CONNECTION_ARGS, "--output-dir", str(output_dir), "--cert-file", str(supplied_cert_file)],
            gateway=fake_gateway,
        )

        assert exit_code == 0
        assert not output_dir.exists()

    def test_existing_connected_app_fails(self, fake_gateway: FakeGateway, tmp_path: Path) -> None:
        """Should exit 1 when the connected app exists and --force is absent."""
        fake_gateway.add_connected_app("Continuous_Integration")

        assert main([*CONNECTION_ARGS, "--output-dir", str(tmp_path)], gateway=fake_gateway) == 1
        assert not (tmp_path / "server.key").exists()

    def test_force_replaces_existing_app(self, fake_gateway: FakeGateway, tmp_path: Path) -> None:
        """Should exit 0 with --force when the connected app exists."""
        fake_gateway.add_connected_app("Continuous_Integration")

        exit_code = main(
            [*CONNECTION_ARGS, "--output-dir", str(tmp_path), "--force"], gateway=fake_gateway
        )

        assert exit_code == 0
        assert len(fake_gateway.calls_to("metadata_delete")) == 1

    def test_missing_cert_file_fails(self, fake_gateway: FakeGateway, tmp_path: Path) -> None:
        """Should exit 1 when --cert-file does not exist."""
        exit_code = main(
            [*CONNECTION_ARGS, "--cert-file", str(tmp_path / "missing.pem")], gateway=fake_gateway
        )

        assert exit_code == 1

    def test_missing_connection_settings_fails(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should exit 1 when neither flags nor environment provide credentials."""
        monkeypatch.delenv("SF_INSTANCE_URL", raising=False)
        monkeypatch.delenv("SF_ACCESS_TOKEN", raising=False)

        assert main([]) == 1

    def test_builds_salesforce_client_without_injected_gateway(self, tmp_path: Path) -> None:
        """Should construct SalesforceClient from the resolved configuration."""
        with patch("ci_provisioning.scripts.setup_ci.SalesforceClient") as mock_client_cls:
            mock_client = mock_client_cls.return_value
            mock_client.metadata_read.return_value = {"fullName": "Continuous_Integration"}

            assert main([*CONNECTION_ARGS, "--output-dir", str(tmp_path)]) == 1

        config = mock_client_cls.call_args[0][0]
        assert config.instance_url == "https://example.my.salesforce.com"
        assert config.access_token == "TOKEN"


class TestResolveSalesforceConfig:
    """Tests for resolve_salesforce_config."""

    def test_flags_override_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Command-line values should win over SF_* variables."""
        monkeypatch.setenv("SF_INSTANCE_URL", "https://env.my.salesforce.com")
        monkeypatch.setenv("SF_ACCESS_TOKEN", "ENVTOKEN")
        monkeypatch.delenv("SF_LOGIN_URL", raising=False)
        args = build_parser().parse_args(["--access-token", "FLAGTOKEN", "--api-version", "61.0"])

        config = resolve_salesforce_config(args)

        assert config == SalesforceConfig(
            instance_url="https://env.my.salesforce.com",
            access_token="FLAGTOKEN",
            api_version="61.0",
        )

    def test_instance_url_flag_with_token_from_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """--instance-url alone should combine with SF_ACCESS_TOKEN."""
        monkeypatch.delenv("SF_INSTANCE_URL", raising=False)
        monkeypatch.setenv("SF_ACCESS_TOKEN", "ENVTOKEN")
        args = build_parser().parse_args(["--instance-url", "https://flag.my.salesforce.com/"])

        config = resolve_salesforce_config(args)

        assert config.instance_url == "https://flag.my.salesforce.com"
        assert config.access_token == "ENVTOKEN"

    def test_access_token_flag_with_url_from_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """--access-token alone should combine with SF_INSTANCE_URL."""
        monkeypatch.setenv("SF_INSTANCE_URL", "https://env.my.salesforce.com")
        monkeypatch.delenv("SF_ACCESS_TOKEN", raising=False)
        args = build_parser().parse_args(["--access-token", "FLAGTOKEN"])

        config = resolve_salesforce_config(args)

        assert config.instance_url == "https://env.my.salesforce.com"
        assert config.access_token == "FLAGTOKEN"

    def test_missing_access_token_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A URL without any token should still be rejected."""
        monkeypatch.delenv("SF_ACCESS_TOKEN", raising=False)
        args = build_parser().parse_args(["--instance-url", "https://flag.my.salesforce.com"])

        with pytest.raises(ValueError, match="SF_ACCESS_TOKEN"):
            resolve_salesforce_config(args)


class TestFileWritingHooks:
    """Tests for file_writing_hooks."""

    def test_creates_output_dir_and_writes_files(self, tmp_path: Path) -> None:
        """Hooks should create the directory and write both PEM files."""
        output_dir = tmp_path / "nested" / "out"
        hooks = file_writing_hooks(output_dir, ProvisioningConfig())

        assert hooks.on_generate_key_pair is not None
        assert hooks.on_generate_certificate is not None
        hooks.on_generate_key_pair("KEY PEM")
        hooks.on_generate_certificate("CERT PEM")

        assert (output_dir / "server.key").read_text() == "KEY PEM"
        assert (output_dir / "server.crt").read_text() == "CERT PEM"

    def test_key_file_restricted_before_key_is_written(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """server.key should already be 0600 when the PEM is written into it."""
        key_path = tmp_path / "server.key"
        key_path.write_text("stale")
        key_path.chmod(0o644)
        modes_at_write = []
        original_write_text = Path.write_text

        def recording_write_text(self: Path, data: str, *args, **kwargs) -> int:
            if self == key_path:
                modes_at_write.append(stat.S_IMODE(self.stat().st_mode))
            return original_write_text(self, data, *args, **kwargs)

        monkeypatch.setattr(Path, "write_text", recording_write_text)
        hooks = file_writing_hooks(tmp_path, ProvisioningConfig())
        assert hooks.on_generate_key_pair is not None
        hooks.on_generate_key_pair("KEY PEM")

        assert modes_at_write == [0o600]
        assert key_path.read_text() == "KEY PEM"

    def test_progress_hooks_log(self, tmp_path: Path) -> None:
        """Before-hooks should only log progress."""
        hooks = file_writing_hooks(tmp_path, ProvisioningConfig())

        with patch("ci_provisioning.scripts.setup_ci.LOGGER", MagicMock()) as mock_logger:
            assert hooks.before_generate_key_pair is not None
            assert hooks.before_generate_certificate is not None
            hooks.before_generate_key_pair()
            hooks.before_generate_certificate()

        assert mock_logger.info.call_count == 2
        assert list(tmp_path.iterdir()) == []


class TestFollowUpInstructions:
    """Tests for follow_up_instructions."""

    def test_generated_key_instructions(self) -> None:
        """Should include the JWT grant and permission set assignment commands."""
        lines = follow_up_instructions(
            _result(), Path("./server.key"), "https://login.salesforce.com"
        )

        assert (
            "    sfdx auth:jwt:grant -u user@example.org -f server.key -i APPKEY "
            "-r https://login.salesforce.com"
        ) in lines
        assert (
            "    sfdx force:user:permset:assign -n Continuous_Integration -o <other user>"
        ) in lines

    def test_supplied_certificate_instructions(self) -> None:
        """Should point at the operator's own private key."""
        lines = follow_up_instructions(_result(None), None, "https://test.salesforce.com")

        assert any("-f <your private key file>" in line for line in lines)
        assert "Use the private key matching the certificate you supplied." in lines
