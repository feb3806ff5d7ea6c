"""Credential selection for the Azure control plane.

In-cluster the operator authenticates with a managed identity and refuses to
start when service principal secrets are present in its environment.
Developer workstations opt out with ``HCS_USE_MSI=false`` and get
``DefaultAzureCredential`` (Azure CLI, VS Code, environment).
"""

from __future__ import annotations

import logging
import os

from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential, ManagedIdentityCredential

from .config import Config

logger = logging.getLogger(__name__)

# Environment variables that indicate secret-based authentication
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)

SECRETLESS_VIOLATION_MESSAGE = (
    "{env_var} is set, but the operator authenticates with a managed identity only. "
    "Remove credential environment variables and assign a user-assigned managed "
    "identity to the workload, or set HCS_USE_MSI=false for local use."
)


class SecretlessViolationError(Exception):
    """Raised when credential secrets are found while managed identity is enforced."""

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to continue if any credential secret is in the environment.

    Raises:
        SecretlessViolationError: On the first forbidden variable found.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={"env_var": env_var, "action": "startup_blocked"},
            )
            raise SecretlessViolationError(SECRETLESS_VIOLATION_MESSAGE.format(env_var=env_var))


def get_managed_identity_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after verifying the environment.

    Args:
        client_id: Client ID of a user-assigned identity; system-assigned if None.

    Raises:
        SecretlessViolationError: If credential environment variables are set.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


def get_credential(config: Config) -> TokenCredential:
    """Select the credential for every Azure client built from ``config``."""
    if config.use_msi:
        return get_managed_identity_credential(config.client_id)

    logger.info("Managed identity disabled, using DefaultAzureCredential")
    return DefaultAzureCredential()
