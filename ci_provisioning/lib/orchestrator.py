"""Provisioning orchestrator: sequences certificate, permission set and connected app setup."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .certificate_generator import CertificateGenerator, GenerationHooks
from .connected_app import ConnectedAppProvisioner
from .exceptions import ConnectedAppExistsError, ProvisioningError
from .gateway import RemoteResourceGateway
from .models import CertificateMaterial, Identity, ProvisioningRequest, ProvisioningResult
from .naming import to_api_name
from .permission_set import PermissionSetProvisioner

logger = logging.getLogger(__name__)


class ProvisioningState(Enum):
    """Provisioning steps, in execution order."""

    CHECK_EXISTING = "check_existing"
    ACQUIRE_CERTIFICATE = "acquire_certificate"
    PROVISION_PERMISSION_SET = "provision_permission_set"
    ASSIGN_PERMISSION_SET = "assign_permission_set"
    PROVISION_CONNECTED_APP = "provision_connected_app"
    DONE = "done"


@dataclass
class _RunContext:
    """Values produced by earlier steps and consumed by later ones."""

    request: ProvisioningRequest
    hooks: GenerationHooks | None
    replace_existing: bool = False
    certificate: CertificateMaterial | None = None
    identity: Identity | None = None
    consumer_key: str | None = None


class ProvisioningOrchestrator:
    """Runs the provisioning steps strictly in sequence.

    Any exception aborts the run. Remote resources created by earlier steps are
    left in place for inspection or a re-run.
    """

    def __init__(
        self,
        gateway: RemoteResourceGateway,
        generator: CertificateGenerator,
        permission_sets: PermissionSetProvisioner,
        connected_apps: ConnectedAppProvisioner,
    ) -> None:
        self.gateway = gateway
        self.generator = generator
        self.permission_sets = permission_sets
        self.connected_apps = connected_apps
        self._steps: dict[
            ProvisioningState, Callable[[_RunContext], ProvisioningState]
        ] = {
            ProvisioningState.CHECK_EXISTING: self._check_existing,
            ProvisioningState.ACQUIRE_CERTIFICATE: self._acquire_certificate,
            ProvisioningState.PROVISION_PERMISSION_SET: self._provision_permission_set,
            ProvisioningState.ASSIGN_PERMISSION_SET: self._assign_permission_set,
            ProvisioningState.PROVISION_CONNECTED_APP: self._provision_connected_app,
        }

    def run(
        self,
        request: ProvisioningRequest,
        hooks: GenerationHooks | None = None,
    ) -> ProvisioningResult:
        """Provision certificate, permission set and connected app.

        Args:
            request: Connected app name, permission set name, force flag and optional cert file
            hooks: Progress callbacks passed to certificate generation

        Returns:
            ProvisioningResult with consumer key and PEM material

        Raises:
            ConnectedAppExistsError: If the app exists and force was not requested
            ProvisioningError: If any remote step fails
        """
        context = _RunContext(request=request, hooks=hooks)
        state = ProvisioningState.CHECK_EXISTING
        while state is not ProvisioningState.DONE:
            logger.debug("Entering state %s", state.value)
            state = self._steps[state](context)
        return self._result(context)

    def _check_existing(self, context: _RunContext) -> ProvisioningState:
        name = context.request.connected_app_name
        if self.connected_apps.exists(name):
            if not context.request.force:
                raise ConnectedAppExistsError(to_api_name(name))
            logger.info("Connected app %s exists and will be replaced", to_api_name(name))
            context.replace_existing = True
        return ProvisioningState.ACQUIRE_CERTIFICATE

    def _acquire_certificate(self, context: _RunContext) -> ProvisioningState:
        certificate_file = context.request.certificate_file
        if certificate_file is not None:
            logger.info("Using certificate from %s", certificate_file)
            context.certificate = CertificateGenerator.load_certificate_file(certificate_file)
        else:
            context.certificate = self.generator.generate(context.hooks)
        return ProvisioningState.PROVISION_PERMISSION_SET

    def _provision_permission_set(self, context: _RunContext) -> ProvisioningState:
        self.permission_sets.ensure_exists(
            context.request.effective_permission_set_name,
            f"Permission set for the {context.request.connected_app_name} connected app",
        )
        return ProvisioningState.ASSIGN_PERMISSION_SET

    def _assign_permission_set(self, context: _RunContext) -> ProvisioningState:
        context.identity = self.gateway.identity()
        self.permission_sets.assign(
            context.request.effective_permission_set_name,
            context.identity["user_id"],
        )
        return ProvisioningState.PROVISION_CONNECTED_APP

    def _provision_connected_app(self, context: _RunContext) -> ProvisioningState:
        if context.certificate is None or context.identity is None:
            raise ProvisioningError("certificate and identity must be resolved first")
        context.consumer_key = self.connected_apps.create_or_replace(
            connected_app_name=context.request.connected_app_name,
            permission_set_name=context.request.effective_permission_set_name,
            certificate_pem=context.certificate.certificate_pem,
            replace_existing=context.replace_existing,
            contact_email=context.identity["username"],
        )
        return ProvisioningState.DONE

    @staticmethod
    def _result(context: _RunContext) -> ProvisioningResult:
        if context.certificate is None or context.identity is None or context.consumer_key is None:
            raise ProvisioningError("provisioning finished without a consumer key")
        return ProvisioningResult(
            full_name=to_api_name(context.request.connected_app_name),
            consumer_key=context.consumer_key,
            certificate_pem=context.certificate.certificate_pem,
            private_key_pem=context.certificate.private_key_pem,
            permission_set_name=to_api_name(context.request.effective_permission_set_name),
            username=context.identity["username"],
        )
