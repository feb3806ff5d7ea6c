"""Configuration management with validation.

Invalid configuration is rejected at load time so the operator never starts
talking to Azure with a half-valid setup.
"""

from __future__ import annotations

import os
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_RECONCILE_INTERVAL_SECONDS = 300
MIN_RECONCILE_INTERVAL_SECONDS = 60
MAX_RECONCILE_INTERVAL_SECONDS = 3600

DEFAULT_OPERATION_POLL_INTERVAL_SECONDS = 10.0
MAX_OPERATION_POLL_INTERVAL_SECONDS = 300.0

# Azure rejects re-creating a same-named managed app while the previous
# purchase is still being cancelled.
DEFAULT_DELETE_COOLDOWN_SECONDS = 60.0
MAX_DELETE_COOLDOWN_SECONDS = 600.0

DEFAULT_CLUSTER_CREATE_TIMEOUT_SECONDS = 60 * 60
DEFAULT_CLUSTER_DELETE_TIMEOUT_SECONDS = 25 * 60
DEFAULT_ROOT_TOKEN_TIMEOUT_SECONDS = 5 * 60
DEFAULT_SNAPSHOT_TIMEOUT_SECONDS = 15 * 60
DEFAULT_DATA_SOURCE_TIMEOUT_SECONDS = 5 * 60

DEFAULT_HCP_API_DOMAIN = "api.cloud.hashicorp.com"
DEFAULT_MARKETPLACE_PRODUCT_NAME = "hcs-production"
DEFAULT_SOURCE_CHANNEL = "hcs-operator"
DEFAULT_META_URL = "https://raw.githubusercontent.com/hashicorp/cloud-hcs-meta/master"
DEFAULT_RESOURCE_MANAGER_ENDPOINT = "https://management.azure.com"

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file
MAX_STATE_FILE_SIZE_BYTES = 1024 * 1024

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_DOMAIN_NAME_PATTERN = r"^[a-z0-9.-]+(:\d+)?$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.

    The correlation id is generated once per Config and handed to every
    client built from it; nothing else in the process owns it.
    """

    # Required fields
    subscription_id: str

    # Identity
    client_id: str | None = None
    use_msi: bool = True

    # HCS service endpoints and marketplace identity
    hcp_api_domain: str = DEFAULT_HCP_API_DOMAIN
    marketplace_product_name: str = DEFAULT_MARKETPLACE_PRODUCT_NAME
    source_channel: str = DEFAULT_SOURCE_CHANNEL
    meta_url: str = DEFAULT_META_URL
    resource_manager_endpoint: str = DEFAULT_RESOURCE_MANAGER_ENDPOINT

    # Paths
    specs_dir: Path = field(default_factory=lambda: Path("/specs"))
    state_dir: Path = field(default_factory=lambda: Path("/state"))

    # Timing
    reconcile_interval_seconds: int = DEFAULT_RECONCILE_INTERVAL_SECONDS
    operation_poll_interval_seconds: float = DEFAULT_OPERATION_POLL_INTERVAL_SECONDS
    delete_cooldown_seconds: float = DEFAULT_DELETE_COOLDOWN_SECONDS
    cluster_create_timeout_seconds: int = DEFAULT_CLUSTER_CREATE_TIMEOUT_SECONDS
    cluster_delete_timeout_seconds: int = DEFAULT_CLUSTER_DELETE_TIMEOUT_SECONDS
    root_token_timeout_seconds: int = DEFAULT_ROOT_TOKEN_TIMEOUT_SECONDS
    snapshot_timeout_seconds: int = DEFAULT_SNAPSHOT_TIMEOUT_SECONDS

    # Behavior
    dry_run: bool = False

    # Tracing
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not self.hcp_api_domain:
            errors.append("HCP_API_DOMAIN cannot be empty")
        elif not re.match(VALID_DOMAIN_NAME_PATTERN, _strip_scheme(self.hcp_api_domain)):
            errors.append(f"HCP_API_DOMAIN must be a host name: {self.hcp_api_domain}")

        if not self.marketplace_product_name:
            errors.append("HCS_MARKETPLACE_PRODUCT cannot be empty")

        if not self.source_channel:
            errors.append("HCS_SOURCE_CHANNEL cannot be empty")

        for name, url in (
            ("HCS_META_URL", self.meta_url),
            ("ARM_ENDPOINT", self.resource_manager_endpoint),
        ):
            if not url.startswith("https://"):
                errors.append(f"{name} must be an https URL: {url}")

        if not (
            MIN_RECONCILE_INTERVAL_SECONDS
            <= self.reconcile_interval_seconds
            <= MAX_RECONCILE_INTERVAL_SECONDS
        ):
            errors.append(
                f"RECONCILE_INTERVAL must be between {MIN_RECONCILE_INTERVAL_SECONDS} "
                f"and {MAX_RECONCILE_INTERVAL_SECONDS} seconds"
            )

        if not 0 < self.operation_poll_interval_seconds <= MAX_OPERATION_POLL_INTERVAL_SECONDS:
            errors.append(
                "OPERATION_POLL_INTERVAL must be greater than 0 and at most "
                f"{MAX_OPERATION_POLL_INTERVAL_SECONDS:g} seconds"
            )

        if not 0 <= self.delete_cooldown_seconds <= MAX_DELETE_COOLDOWN_SECONDS:
            errors.append(
                f"DELETE_COOLDOWN must be between 0 and {MAX_DELETE_COOLDOWN_SECONDS:g} seconds"
            )

        for name, timeout in (
            ("CLUSTER_CREATE_TIMEOUT", self.cluster_create_timeout_seconds),
            ("CLUSTER_DELETE_TIMEOUT", self.cluster_delete_timeout_seconds),
            ("ROOT_TOKEN_TIMEOUT", self.root_token_timeout_seconds),
            ("SNAPSHOT_TIMEOUT", self.snapshot_timeout_seconds),
        ):
            if timeout < 1:
                errors.append(f"{name} must be at least 1 second")

        if not self.correlation_id:
            errors.append("correlation_id cannot be empty")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def spec_path(self) -> Path:
        """Location of the cluster spec reconciled by the operator loop."""
        return self.specs_dir / "cluster.yaml"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription hosting the managed applications
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity (optional)
            HCS_USE_MSI: If "false", fall back to DefaultAzureCredential (default: true)
            HCP_API_DOMAIN: Host serving the Consul version catalog
            HCS_MARKETPLACE_PRODUCT: Azure Marketplace product (offer) name
            HCS_SOURCE_CHANNEL: Channel reported to HCS on cluster creation
            HCS_META_URL: Base URL of the plan defaults and regions catalog
            ARM_ENDPOINT: Azure Resource Manager endpoint
            SPECS_DIR: Path to YAML cluster specs (default: /specs)
            STATE_DIR: Path to tracked state files (default: /state)
            RECONCILE_INTERVAL: Seconds between reconciliation loops (default: 300)
            OPERATION_POLL_INTERVAL: Seconds between async operation polls (default: 10)
            DELETE_COOLDOWN: Seconds to wait after deleting a cluster (default: 60)
            CLUSTER_CREATE_TIMEOUT: Deadline for cluster create/update (default: 3600)
            CLUSTER_DELETE_TIMEOUT: Deadline for cluster delete (default: 1500)
            ROOT_TOKEN_TIMEOUT: Deadline for root token operations (default: 300)
            SNAPSHOT_TIMEOUT: Deadline for snapshot operations (default: 900)
            DRY_RUN: If "true", only log intended changes (default: false)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            use_msi=get_bool("HCS_USE_MSI", True),
            hcp_api_domain=os.environ.get("HCP_API_DOMAIN", DEFAULT_HCP_API_DOMAIN),
            marketplace_product_name=os.environ.get(
                "HCS_MARKETPLACE_PRODUCT", DEFAULT_MARKETPLACE_PRODUCT_NAME
            ),
            source_channel=os.environ.get("HCS_SOURCE_CHANNEL", DEFAULT_SOURCE_CHANNEL),
            meta_url=os.environ.get("HCS_META_URL", DEFAULT_META_URL),
            resource_manager_endpoint=os.environ.get(
                "ARM_ENDPOINT", DEFAULT_RESOURCE_MANAGER_ENDPOINT
            ),
            specs_dir=Path(os.environ.get("SPECS_DIR", "/specs")),
            state_dir=Path(os.environ.get("STATE_DIR", "/state")),
            reconcile_interval_seconds=get_int(
                "RECONCILE_INTERVAL", DEFAULT_RECONCILE_INTERVAL_SECONDS
            ),
            operation_poll_interval_seconds=get_float(
                "OPERATION_POLL_INTERVAL", DEFAULT_OPERATION_POLL_INTERVAL_SECONDS
            ),
            delete_cooldown_seconds=get_float("DELETE_COOLDOWN", DEFAULT_DELETE_COOLDOWN_SECONDS),
            cluster_create_timeout_seconds=get_int(
                "CLUSTER_CREATE_TIMEOUT", DEFAULT_CLUSTER_CREATE_TIMEOUT_SECONDS
            ),
            cluster_delete_timeout_seconds=get_int(
                "CLUSTER_DELETE_TIMEOUT", DEFAULT_CLUSTER_DELETE_TIMEOUT_SECONDS
            ),
            root_token_timeout_seconds=get_int(
                "ROOT_TOKEN_TIMEOUT", DEFAULT_ROOT_TOKEN_TIMEOUT_SECONDS
            ),
            snapshot_timeout_seconds=get_int("SNAPSHOT_TIMEOUT", DEFAULT_SNAPSHOT_TIMEOUT_SECONDS),
            dry_run=get_bool("DRY_RUN", False),
        )


def _strip_scheme(domain: str) -> str:
    return domain.removeprefix("https://").rstrip("/")
