"""Connected app provisioning."""

import logging

from .config import ProvisioningConfig
from .exceptions import ReadBackError, RemoteOperationError, check_save_result
from .gateway import RemoteResourceGateway
from .models import ConnectedAppMetadata, ConnectedAppOAuthConfig, ConnectedAppOAuthPolicy
from .naming import to_api_name

logger = logging.getLogger(__name__)


class ConnectedAppProvisioner:
    """Creates (or replaces) the certificate-based connected app."""

    def __init__(self, gateway: RemoteResourceGateway, config: ProvisioningConfig) -> None:
        self.gateway = gateway
        self.config = config

    def exists(self, connected_app_name: str) -> bool:
        """Return True if a connected app with the label's API name exists."""
        record = self.gateway.metadata_read("ConnectedApp", to_api_name(connected_app_name))
        return bool(record.get("fullName"))

    def build_definition(
        self,
        connected_app_name: str,
        permission_set_name: str,
        certificate_pem: str,
        contact_email: str,
    ) -> ConnectedAppMetadata:
        """Build the ConnectedApp metadata component."""
        return ConnectedAppMetadata(
            fullName=to_api_name(connected_app_name),
            label=connected_app_name,
            description=self.config.connected_app_description,
            contactEmail=contact_email,
            permissionSetName=to_api_name(permission_set_name),
            oauthConfig=ConnectedAppOAuthConfig(
                callbackUrl=self.config.callback_url,
                certificate=certificate_pem,
                isAdminApproved=True,
                isConsumerSecretOptional=True,
                scopes=list(self.config.scopes),
            ),
            oauthPolicy=ConnectedAppOAuthPolicy(
                ipRelaxation=self.config.ip_relaxation,
                refreshTokenPolicy=self.config.refresh_token_policy,
            ),
        )

    def create_or_replace(
        self,
        connected_app_name: str,
        permission_set_name: str,
        certificate_pem: str,
        replace_existing: bool,
        contact_email: str,
    ) -> str:
        """Create the connected app, deleting an existing one first if requested.

        Duplicate names are not suppressed here: an existing app must be handled
        through the existence check and replace_existing.

        Args:
            connected_app_name: Connected app label
            permission_set_name: Label of the permission set controlling access
            certificate_pem: Certificate used to verify JWT bearer signatures
            replace_existing: Delete an existing app with the same API name first
            contact_email: Contact email, normally the operator's username

        Returns:
            Consumer key (OAuth client id) of the new connected app

        Raises:
            RemoteOperationError: If creation fails
            ReadBackError: If the created app has no consumer key
        """
        full_name = to_api_name(connected_app_name)

        if replace_existing:
            self._delete_existing(full_name)

        definition = self.build_definition(
            connected_app_name, permission_set_name, certificate_pem, contact_email
        )
        check_save_result(
            "create ConnectedApp",
            self.gateway.metadata_create("ConnectedApp", dict(definition)),
        )
        logger.info("Created connected app %s", full_name)

        # Consumer key is only assigned by the platform after creation
        record = self.gateway.metadata_read("ConnectedApp", full_name)
        consumer_key = (record.get("oauthConfig") or {}).get("consumerKey")
        if not consumer_key:
            raise ReadBackError(full_name, "oauthConfig.consumerKey")
        return consumer_key

    def _delete_existing(self, full_name: str) -> None:
        """Delete the connected app, warning instead of failing.

        A delete that silently did not happen makes the following create fail loudly.
        """
        try:
            check_save_result(
                "delete ConnectedApp",
                self.gateway.metadata_delete("ConnectedApp", full_name),
            )
        except RemoteOperationError as e:
            logger.warning("Failed to delete connected app %s: %s", full_name, e)
            return
        logger.info("Deleted existing connected app %s", full_name)
