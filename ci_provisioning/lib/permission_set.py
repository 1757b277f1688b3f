"""Permission set provisioning."""

import logging

from .exceptions import (
    AmbiguousPermissionSetError,
    PermissionSetNotFoundError,
    RemoteOperationError,
    check_save_result,
)
from .gateway import RemoteResourceGateway, soql_literal
from .models import PermissionSetMetadata
from .naming import to_api_name

logger = logging.getLogger(__name__)

# A concurrent run may create the permission set between the count query and our create
DUPLICATE_PERMISSION_SET_CODES = ("DUPLICATE_VALUE", "DUPLICATE_DEVELOPER_NAME")
DUPLICATE_ASSIGNMENT_CODES = ("DUPLICATE_VALUE",)


class PermissionSetProvisioner:
    """Idempotently creates permission sets and assigns them to users."""

    def __init__(self, gateway: RemoteResourceGateway) -> None:
        self.gateway = gateway

    def ensure_exists(self, permission_set_name: str, description: str) -> bool:
        """Create the permission set unless one with the same API name exists.

        Args:
            permission_set_name: Permission set label (converted to API name)
            description: Description for a newly created permission set

        Returns:
            True if the permission set was created, False if it already existed

        Raises:
            RemoteOperationError: If creation fails for a reason other than a duplicate name
        """
        full_name = to_api_name(permission_set_name)
        count = self.gateway.query(
            f"SELECT COUNT() FROM PermissionSet WHERE Name = {soql_literal(full_name)}"
        )
        if count["totalSize"] > 0:
            logger.info("Permission set %s already exists", full_name)
            return False

        permission_set = PermissionSetMetadata(
            fullName=full_name,
            label=permission_set_name,
            description=description,
        )
        try:
            check_save_result(
                "create PermissionSet",
                self.gateway.metadata_create("PermissionSet", dict(permission_set)),
            )
        except RemoteOperationError as e:
            if e.has_status(*DUPLICATE_PERMISSION_SET_CODES):
                logger.info("Permission set %s was created concurrently", full_name)
                return False
            raise

        logger.info("Created permission set %s", full_name)
        return True

    def assign(self, permission_set_name: str, user_id: str) -> None:
        """Assign the permission set to a user; an existing assignment is fine.

        Args:
            permission_set_name: Permission set label (converted to API name)
            user_id: Id (not username) of the user to assign

        Raises:
            PermissionSetNotFoundError: If no permission set has the API name
            AmbiguousPermissionSetError: If several permission sets share the API name
            RemoteOperationError: If the assignment fails for a reason other than a duplicate
        """
        full_name = to_api_name(permission_set_name)
        results = self.gateway.query(
            f"SELECT Id, Name FROM PermissionSet WHERE Name = {soql_literal(full_name)}"
        )
        records = results["records"]
        if not records:
            raise PermissionSetNotFoundError(full_name)
        if len(records) > 1:
            raise AmbiguousPermissionSetError(full_name, len(records))

        try:
            check_save_result(
                "create PermissionSetAssignment",
                self.gateway.record_create(
                    "PermissionSetAssignment",
                    {"PermissionSetId": records[0]["Id"], "AssigneeId": user_id},
                ),
            )
        except RemoteOperationError as e:
            if e.has_status(*DUPLICATE_ASSIGNMENT_CODES):
                logger.info("User %s already assigned to %s", user_id, full_name)
                return
            raise

        logger.info("Assigned user %s to permission set %s", user_id, full_name)
