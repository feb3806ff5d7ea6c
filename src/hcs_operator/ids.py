"""Parsing helpers for Azure resource ids and composite import ids."""

from __future__ import annotations

from .errors import ValidationFailedError

IMPORT_ID_FORMAT = "import id string must be of format `managed_application_id:cluster_name`"

VNET_NAME_SUFFIX = "-vnet"


def parse_resource_group_name(resource_id: str) -> str:
    """Extract the resource group name from an Azure resource id.

    Args:
        resource_id: Id such as ``/subscriptions/S/resourceGroups/RG/...``.

    Returns:
        The resource group segment.

    Raises:
        ValidationFailedError: If the id has fewer than four segments or the
            third segment is not ``resourceGroups``.
    """
    parts = resource_id.removeprefix("/").split("/")
    if len(parts) < 4 or parts[2] != "resourceGroups":
        raise ValidationFailedError(f"unexpected format of ID ({resource_id}), expected resource group")
    return parts[3]


def parse_resource_name(resource_id: str) -> str:
    """Return the last segment of a resource id, or an empty string."""
    if not resource_id:
        return ""
    return resource_id.rstrip("/").split("/")[-1]


def parse_import_id(import_id: str) -> tuple[str, str]:
    """Split ``managed_application_id:cluster_name`` into its halves.

    Raises:
        ValidationFailedError: Unless the id holds exactly one colon with a
            non-empty value on each side.
    """
    if ":" not in import_id:
        raise ValidationFailedError(f"{IMPORT_ID_FORMAT}; id string: {import_id} does not contain `:`")

    segments = import_id.split(":")
    if len(segments) != 2:
        raise ValidationFailedError(
            f"{IMPORT_ID_FORMAT}; id string: {import_id} contains more than one `:`"
        )
    app_id, cluster_name = segments
    if not app_id:
        raise ValidationFailedError(
            f"{IMPORT_ID_FORMAT}; id string: {import_id} has empty string to left of `:`"
        )
    if not cluster_name:
        raise ValidationFailedError(
            f"{IMPORT_ID_FORMAT}; id string: {import_id} has empty string to right of `:`"
        )
    return app_id, cluster_name


def vnet_name_for(cluster_vnet_name: str) -> str:
    """Derive the Azure VNet name, which always carries a ``-vnet`` suffix."""
    return cluster_vnet_name.removesuffix(VNET_NAME_SUFFIX) + VNET_NAME_SUFFIX


def managed_resource_group_id(
    *,
    resource_group_id: str,
    app_name: str,
    subscription_id: str,
    managed_resource_group_name: str | None = None,
) -> str:
    """Build the managed resource group id for a new managed application."""
    if managed_resource_group_name:
        return f"/subscriptions/{subscription_id}/resourceGroups/{managed_resource_group_name}"
    return f"{resource_group_id}-mrg-{app_name}"
