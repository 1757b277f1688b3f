#!/usr/bin/env python3
"""Set up certificate-based CI access: certificate, permission set and connected app."""

import argparse
import json
import logging
import sys
from pathlib import Path

from ci_provisioning.lib.certificate_generator import CertificateGenerator, GenerationHooks
from ci_provisioning.lib.config import (
    DEFAULT_CONNECTED_APP_NAME,
    ProvisioningConfig,
    SalesforceConfig,
)
from ci_provisioning.lib.connected_app import ConnectedAppProvisioner
from ci_provisioning.lib.exceptions import ProvisioningError
from ci_provisioning.lib.gateway import RemoteResourceGateway
from ci_provisioning.lib.logging_config import LOGGER, set_log_level
from ci_provisioning.lib.models import ProvisioningRequest, ProvisioningResult
from ci_provisioning.lib.orchestrator import ProvisioningOrchestrator
from ci_provisioning.lib.permission_set import PermissionSetProvisioner
from ci_provisioning.lib.salesforce_client import SalesforceClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create a certificate-based connected app for continuous integration"
    )
    parser.add_argument(
        "-n",
        "--name",
        default=DEFAULT_CONNECTED_APP_NAME,
        help=f"Connected app label (default: {DEFAULT_CONNECTED_APP_NAME})",
    )
    parser.add_argument(
        "-p",
        "--permission-set-name",
        help="Permission set label controlling access (default: the connected app label)",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Replace an existing connected app with the same name",
    )
    parser.add_argument(
        "-c",
        "--cert-file",
        type=Path,
        help="Use this PEM certificate instead of generating a key pair",
    )
    parser.add_argument(
        "-d",
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for generated server.key and server.crt (default: .)",
    )
    parser.add_argument("--instance-url", help="Org instance URL (default: $SF_INSTANCE_URL)")
    parser.add_argument("--access-token", help="OAuth access token (default: $SF_ACCESS_TOKEN)")
    parser.add_argument("--api-version", help="API version (default: $SF_API_VERSION or 59.0)")
    parser.add_argument("--login-url", help="Login URL used in the follow-up instructions")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def resolve_salesforce_config(args: argparse.Namespace) -> SalesforceConfig:
    """Combine command-line overrides with SF_* environment variables.

    Raises:
        ValueError: If no instance URL or access token is available
    """
    config = SalesforceConfig.from_env(
        instance_url=args.instance_url, access_token=args.access_token
    )
    if args.api_version:
        config.api_version = args.api_version
    if args.login_url:
        config.login_url = args.login_url
    return config


def file_writing_hooks(output_dir: Path, config: ProvisioningConfig) -> GenerationHooks:
    """Hooks persisting the generated key and certificate into output_dir."""
    key_path = output_dir / config.private_key_filename
    cert_path = output_dir / config.certificate_filename

    def before_generate_key_pair() -> None:
        LOGGER.info("Generating key pair...")

    def on_generate_key_pair(private_key_pem: str) -> None:
        output_dir.mkdir(parents=True, exist_ok=True)
        # Restrict the file before any key material lands in it
        key_path.touch(mode=0o600)
        key_path.chmod(0o600)
        key_path.write_text(private_key_pem)
        LOGGER.info("Private key written to %s", key_path)

    def before_generate_certificate() -> None:
        LOGGER.info("Generating self-signed certificate...")

    def on_generate_certificate(certificate_pem: str) -> None:
        cert_path.write_text(certificate_pem)
        LOGGER.info("Certificate written to %s", cert_path)

    return GenerationHooks(
        before_generate_key_pair=before_generate_key_pair,
        on_generate_key_pair=on_generate_key_pair,
        before_generate_certificate=before_generate_certificate,
        on_generate_certificate=on_generate_certificate,
    )


def follow_up_instructions(
    result: ProvisioningResult,
    key_path: Path | None,
    login_url: str,
) -> list[str]:
    """Human-readable next steps after a successful run."""
    key_argument = str(key_path) if key_path is not None else "<your private key file>"
    lines = [
        "Your connected app is ready for use. To connect, use the following command:",
        f"    sfdx auth:jwt:grant -u {result.username} -f {key_argument} "
        f"-i {result.consumer_key} -r {login_url}",
    ]
    if key_path is None:
        lines.append("Use the private key matching the certificate you supplied.")
    lines += [
        f"{result.username} has been assigned the {result.permission_set_name} permission set.",
        "To give another user access to the connected app, assign the permission set using:",
        f"    sfdx force:user:permset:assign -n {result.permission_set_name} -o <other user>",
    ]
    return lines


def build_orchestrator(
    gateway: RemoteResourceGateway, config: ProvisioningConfig
) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(
        gateway=gateway,
        generator=CertificateGenerator(config),
        permission_sets=PermissionSetProvisioner(gateway),
        connected_apps=ConnectedAppProvisioner(gateway, config),
    )


def main(argv: list[str] | None = None, gateway: RemoteResourceGateway | None = None) -> int:
    """Run CI setup against the target org.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_log_level(logging.DEBUG)

    try:
        config = ProvisioningConfig()
        sf_config = resolve_salesforce_config(args)
        gateway = gateway or SalesforceClient(sf_config)
        orchestrator = build_orchestrator(gateway, config)

        request = ProvisioningRequest(
            connected_app_name=args.name,
            permission_set_name=args.permission_set_name,
            force=args.force,
            certificate_file=args.cert_file,
        )
        LOGGER.info("Setting up connected app: %s", request.connected_app_name)
        result = orchestrator.run(request, hooks=file_writing_hooks(args.output_dir, config))

        key_path = None
        if result.private_key_pem is not None:
            key_path = args.output_dir / config.private_key_filename
        for line in follow_up_instructions(result, key_path, sf_config.login_url):
            LOGGER.info(line)

        if args.json:
            print(json.dumps(result.to_json(), indent=2))
        return 0

    except FileNotFoundError as e:
        LOGGER.error("Certificate file not found: %s", e)
        return 1
    except ValueError as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1
    except ProvisioningError as e:
        LOGGER.error("CI setup failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
