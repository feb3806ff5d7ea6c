"""Cluster lifecycle reconciliation.

A cluster is a managed application shell plus the Consul cluster living in
its managed resource group. The reconciler drives both remote APIs:

1. Managed application control plane: create, read, tag and delete the shell
   (long-running operations awaited through the SDK poller).
2. Custom-action API: cluster view, root token, upgrades, federation
   (mutating actions return an Operation that is polled until DONE).

Within one call every step is sequential; each step depends on the previous
one. Every wait observes the shutdown event and the per-operation deadline.

State is never tracked internally. Absent, provisioning, ready, updating and
deleting are all derived from what the remote APIs report.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from .ama_models import AMABoolean, AuditLoggingUpdate, ClusterResponse, ClusterUpdate
from .catalog import (
    SupportedRegion,
    fetch_plan_defaults,
    fetch_supported_regions,
    normalize_location,
    region_is_supported,
)
from .clients import AzureClients, build_clients
from .config import Config
from .errors import (
    AlreadyExistsError,
    FederationInvariantViolation,
    HCSError,
    NotFoundError,
    OperationCancelledError,
    RemoteAPIError,
    TransportError,
    ValidationFailedError,
)
from .federation import federation_tokens_have_same_primary, is_primary_with_secondaries
from .ids import parse_import_id, parse_resource_group_name, parse_resource_name, vnet_name_for
from .models import ClusterMode, ClusterSpec, ClusterState
from .operations import OperationCompletion
from .resolution import (
    CreateContext,
    ResolvedClusterIdentity,
    resolve_create,
    resolve_identity,
    validate_audit_logging,
)
from .resource_manager import CallOutcome, ManagedApplication, VirtualNetworkInfo
from .security import get_credential
from .spec_loader import SpecLoadError, load_spec
from .validators import flatten_tags
from .versions import (
    fetch_available_versions,
    from_ama_versions,
    is_valid_version,
    normalize_version,
)

if TYPE_CHECKING:
    from .state import StateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_UPGRADE_VERSIONS_MESSAGE = (
    "no upgrade versions of Consul are available for this cluster; "
    "you may already be on the latest Consul version supported by HCS"
)


# =============================================================================
# Shared machinery
# =============================================================================


class ReconcilerBase:
    """Owner lookups, operation polling and deadlines shared by all reconcilers."""

    def __init__(
        self,
        config: Config,
        clients: AzureClients | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize with configuration and remote clients.

        Args:
            config: Validated operator configuration.
            clients: Prebuilt clients; built from a fresh credential if None.
            stop_event: Shared shutdown event; every wait observes it.
        """
        self._config = config
        if clients is None:
            clients = build_clients(config, get_credential(config))
        self._clients = clients
        self._resources = clients.resources
        self._actions = clients.custom_actions
        self._shutdown_event = stop_event or asyncio.Event()

    @property
    def config(self) -> Config:
        return self._config

    def shutdown(self) -> None:
        """Signal every wait in progress to stop."""
        logger.info("Shutdown requested", extra={"correlation_id": self._config.correlation_id})
        self._shutdown_event.set()

    def _context(self, **context: Any) -> dict[str, Any]:
        return {**context, "correlation_id": self._config.correlation_id}

    async def _find_owner(self, resource_group: str, name: str) -> ManagedApplication | None:
        """Get the owning managed application, or None after a 404."""
        try:
            return await self._resources.get(resource_group, name)
        except NotFoundError:
            logger.warning(
                "No HCS cluster found for owning managed application; removing from state",
                extra=self._context(managed_application=name, resource_group=resource_group),
            )
            return None

    async def _wait_operation(
        self, operation_id: str, managed_resource_group_id: str, resource_name: str
    ) -> None:
        completion = OperationCompletion(
            self._actions.get_operation,
            operation_id,
            managed_resource_group_id,
            resource_name,
            interval_seconds=self._config.operation_poll_interval_seconds,
            stop_event=self._shutdown_event,
            **self._context(),
        )
        await completion.wait()

    async def _with_deadline(
        self, awaitable: Awaitable[T], timeout_seconds: float, operation: str, **context: Any
    ) -> T:
        """Await with a deadline; an expired deadline becomes OperationCancelledError."""
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
        except TimeoutError as e:
            logger.error(
                f"{operation} timed out",
                extra=self._context(timeout_seconds=timeout_seconds, **context),
            )
            raise OperationCancelledError(
                f"{operation} timed out after {timeout_seconds}s",
                **self._context(**context),
            ) from e


# =============================================================================
# Observed state
# =============================================================================


def _is_enabled(value: str) -> bool:
    return value.lower() == "enabled"


def cluster_state_from(
    app: ManagedApplication,
    identity: ResolvedClusterIdentity,
    cluster: ClusterResponse,
    vnet: VirtualNetworkInfo,
) -> ClusterState:
    """Map remote responses onto the observed cluster state."""
    props = cluster.properties
    return ClusterState(
        id=app.id,
        cluster_name=cluster.name or identity.cluster_name,
        resource_group_name=identity.resource_group_name,
        managed_application_name=app.name,
        managed_application_id=props.managed_app_id,
        email=props.email,
        cluster_mode=(
            ClusterMode.DEVELOPMENT if props.consul_num_servers == "1" else ClusterMode.PRODUCTION
        ),
        vnet_cidr=props.consul_vnet_cidr,
        vnet_id=vnet.id,
        vnet_name=vnet.name,
        vnet_resource_group_name=identity.managed_resource_group_name,
        consul_version=props.consul_current_version,
        consul_datacenter=props.consul_datacenter,
        consul_federation_token=props.federation_token,
        consul_external_endpoint=_is_enabled(props.consul_external_endpoint),
        location=props.location,
        plan_name=app.plan_name,
        managed_resource_group_name=identity.managed_resource_group_name,
        tags=dict(app.tags),
        state=props.state,
        storage_account_name=props.storage_account_name,
        storage_account_resource_group=props.storage_account_resource_group,
        blob_container_name=props.blob_container_name,
        consul_automatic_upgrades=_is_enabled(props.consul_automatic_upgrades),
        consul_snapshot_interval=props.consul_snapshot_interval,
        consul_snapshot_retention=props.consul_snapshot_retention,
        consul_config_file=props.consul_config_file,
        consul_ca_file=props.consul_ca_file,
        consul_connect=_is_enabled(props.consul_connect),
        consul_external_endpoint_url=props.consul_external_endpoint_url,
        consul_private_endpoint_url=props.consul_private_endpoint_url,
        consul_cluster_id=props.consul_cluster_id,
        audit_logging_enabled=props.audit_logging_enabled == AMABoolean.TRUE.value,
        audit_log_storage_container_url=props.audit_log_storage_container_url,
        managed_identity_name=parse_resource_name(props.managed_identity),
    )


# =============================================================================
# Update planning
# =============================================================================


@dataclass(frozen=True)
class UpdatePlan:
    """Changes between observed and desired state, split by update channel."""

    immutable: list[str] = field(default_factory=list)
    audit_logging: AuditLoggingUpdate | None = None
    consul_version: str | None = None
    tags: dict[str, str] | None = None

    @property
    def cluster_update(self) -> ClusterUpdate:
        return ClusterUpdate(consul_version=self.consul_version, audit_logging=self.audit_logging)

    @property
    def is_empty(self) -> bool:
        return not self.immutable and self.cluster_update.is_empty and self.tags is None

    def describe(self) -> list[str]:
        changes = [f"{name} (requires re-creation)" for name in self.immutable]
        if self.audit_logging is not None:
            changes.append("audit_logging")
        if self.consul_version:
            changes.append(f"consul_version -> {self.consul_version}")
        if self.tags is not None:
            changes.append("tags")
        return changes


def _federation_token_changed(current: str, desired: str | None) -> bool:
    if not desired or desired == current:
        return False
    # A fresh token from the same primary is interchangeable
    return not (current and federation_tokens_have_same_primary(current, desired))


def immutable_changes(current: ClusterState, spec: ClusterSpec) -> list[str]:
    """Fields that cannot change without deleting and re-creating the cluster.

    Optional fields only count when set in the spec, since their defaults
    were resolved remotely.
    """
    candidates: list[tuple[str, Any, Any]] = [
        ("resource_group_name", current.resource_group_name, spec.resource_group_name),
        ("managed_application_name", current.managed_application_name, spec.managed_application_name),
        ("email", current.email, spec.email),
        ("cluster_mode", current.cluster_mode, spec.cluster_mode),
        ("vnet_cidr", current.vnet_cidr, spec.vnet_cidr),
        ("consul_external_endpoint", current.consul_external_endpoint, spec.consul_external_endpoint),
    ]
    optional: list[tuple[str, Any, Any]] = [
        ("cluster_name", current.cluster_name, spec.cluster_name),
        ("consul_datacenter", current.consul_datacenter, spec.consul_datacenter),
        (
            "location",
            current.location,
            normalize_location(spec.location) if spec.location else None,
        ),
        ("plan_name", current.plan_name, spec.plan_name),
        (
            "managed_resource_group_name",
            current.managed_resource_group_name,
            spec.managed_resource_group_name,
        ),
    ]
    changed = [name for name, have, want in candidates if have != want]
    changed += [name for name, have, want in optional if want is not None and have != want]
    if _federation_token_changed(current.consul_federation_token, spec.consul_federation_token):
        changed.append("consul_federation_token")
    return changed


def _version_changed(current: ClusterState, spec: ClusterSpec) -> bool:
    if not spec.min_consul_version:
        return False
    baseline = current.min_consul_version or current.consul_version
    return normalize_version(spec.min_consul_version) != normalize_version(baseline)


def plan_update(current: ClusterState, spec: ClusterSpec) -> UpdatePlan:
    """Classify the difference between ``current`` and ``spec``.

    Raises:
        ValidationFailedError: If audit logging is enabled without a URL.
    """
    audit_logging = None
    desired_url = spec.audit_log_storage_container_url or ""
    if (
        spec.audit_logging_enabled != current.audit_logging_enabled
        or desired_url != current.audit_log_storage_container_url
    ):
        validate_audit_logging(spec.audit_logging_enabled, desired_url)
        audit_logging = AuditLoggingUpdate(
            enabled=AMABoolean.of(spec.audit_logging_enabled),
            storage_container_url=desired_url,
        )

    consul_version = None
    if _version_changed(current, spec):
        consul_version = normalize_version(spec.min_consul_version or "")

    desired_tags = flatten_tags(spec.tags)
    tags = desired_tags if desired_tags != current.tags else None

    return UpdatePlan(
        immutable=immutable_changes(current, spec),
        audit_logging=audit_logging,
        consul_version=consul_version,
        tags=tags,
    )


# =============================================================================
# Reconciler
# =============================================================================


class ReconcileAction(str, Enum):
    """What a reconciliation cycle did (or would do in dry-run mode)."""

    NONE = "none"
    CREATE = "create"
    UPDATE = "update"


@dataclass
class ReconcileResult:
    """Result of a single reconciliation cycle."""

    resource_group_name: str = ""
    managed_application_name: str = ""
    action: ReconcileAction = ReconcileAction.NONE
    changes: list[str] = field(default_factory=list)
    dry_run: bool = False
    state: ClusterState | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if reconciliation succeeded."""
        return self.error is None


class ClusterReconciler(ReconcilerBase):
    """Create, read, update, delete and import HCS clusters."""

    # =========================================================================
    # Create
    # =========================================================================

    async def create(self, spec: ClusterSpec) -> ClusterState:
        """Create a cluster and mint its initial root token.

        The root token secret in the returned state is the only time it is
        ever observable.

        Raises:
            AlreadyExistsError: If the managed application already exists.
            ValidationFailedError: For an unsupported region or version.
            OperationCancelledError: On shutdown or deadline expiry.
        """
        return await self._with_deadline(
            self._create(spec),
            self._config.cluster_create_timeout_seconds,
            "Cluster create",
            managed_application=spec.managed_application_name,
            resource_group=spec.resource_group_name,
        )

    async def _create(self, spec: ClusterSpec) -> ClusterState:
        validate_audit_logging(spec.audit_logging_enabled, spec.audit_log_storage_container_url)

        name = spec.managed_application_name
        resource_group = spec.resource_group_name
        context = self._context(managed_application=name, resource_group=resource_group)

        try:
            existing = await self._resources.get(resource_group, name)
        except NotFoundError:
            existing = None
        if existing is not None and existing.id:
            raise AlreadyExistsError(
                f"unable to create HCS cluster ({existing.id}) - an HCS cluster with this ID "
                "already exists; import it to start tracking it",
                **context,
            )

        loop = asyncio.get_event_loop()
        group = await self._resources.get_resource_group(resource_group)
        regions = await self._supported_regions()
        versions = await loop.run_in_executor(
            None, fetch_available_versions, self._config.hcp_api_domain
        )
        if not versions:
            raise TransportError("unable to fetch available HCP Consul versions", **context)
        plan_defaults = await loop.run_in_executor(
            None, fetch_plan_defaults, self._config.meta_url
        )

        resolved = resolve_create(
            CreateContext(
                spec=spec,
                config=self._config,
                resource_group=group,
                plan_defaults=plan_defaults,
                available_versions=versions,
            )
        )

        if not region_is_supported(resolved.location, regions):
            raise ValidationFailedError(
                f"unsupported location: {resolved.location}; expected location to be one of "
                f"{[r.short_name for r in regions]}",
                **context,
            )
        if not is_valid_version(resolved.consul_version, versions):
            raise ValidationFailedError(
                f"specified Consul version ({resolved.consul_version}) is unavailable; "
                f"must be one of: {[str(v) for v in versions]}",
                **context,
            )

        logger.info(
            "Creating HCS cluster",
            extra={
                **context,
                "cluster_name": resolved.cluster_name,
                "location": resolved.location,
                "consul_version": resolved.consul_version,
                "plan_name": resolved.plan_name,
            },
        )
        completion = await self._resources.begin_create(resource_group, name, resolved)
        await completion.wait()

        app = await self._resources.get(resource_group, name)
        if not app.id:
            raise RemoteAPIError("unable to read HCS cluster ID", **context)

        token = await self._actions.create_root_token(app.managed_resource_group_id)

        state = await self._observe(app, resolved.cluster_name)
        logger.info(
            "HCS cluster created",
            extra={**context, "managed_application_id": app.id},
        )
        return state.model_copy(
            update={
                "min_consul_version": spec.min_consul_version,
                "consul_root_token_accessor_id": token.master_token.accessor_id,
                "consul_root_token_secret_id": token.master_token.secret_id,
            }
        )

    async def _supported_regions(self) -> list[SupportedRegion]:
        """Fetch the region catalog; unavailable means no restriction."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, fetch_supported_regions, self._config.meta_url
            )
        except TransportError as e:
            logger.warning(
                "Supported regions unavailable, not restricting location",
                extra={"error": str(e)},
            )
            return []

    # =========================================================================
    # Read
    # =========================================================================

    async def read(self, tracked_id: str, cluster_name: str | None = None) -> ClusterState | None:
        """Observe a tracked cluster.

        Returns:
            The observed state, or None if the managed application is gone
            and the cluster should be dropped from tracked state.
        """
        try:
            app = await self._resources.get_by_id(tracked_id)
        except NotFoundError:
            logger.warning(
                "No HCS cluster found; removing from state",
                extra=self._context(managed_application_id=tracked_id),
            )
            return None
        return await self._observe(app, cluster_name)

    async def read_by_name(
        self, resource_group: str, name: str, cluster_name: str | None = None
    ) -> ClusterState | None:
        """Observe a cluster by resource group and managed application name.

        Returns:
            The observed state, or None if the managed application does not exist.
        """
        app = await self._find_owner(resource_group, name)
        if app is None:
            return None
        return await self._observe(app, cluster_name)

    async def _observe(self, app: ManagedApplication, cluster_name: str | None) -> ClusterState:
        identity = resolve_identity(app, cluster_name)
        cluster = await self._actions.fetch_cluster(
            identity.managed_resource_group_id, identity.cluster_name
        )
        # The cluster view stores the VNet name without its suffix
        vnet = await self._resources.get_virtual_network(
            identity.managed_resource_group_name,
            vnet_name_for(cluster.properties.vnet_name),
        )
        return cluster_state_from(app, identity, cluster, vnet)

    # =========================================================================
    # Update
    # =========================================================================

    async def update(self, current: ClusterState, spec: ClusterSpec) -> ClusterState | None:
        """Converge a tracked cluster towards ``spec``.

        Audit logging and version upgrades go through one ``update`` custom
        action; tags go to the managed application. Each channel runs only
        when its own fields changed.

        Returns:
            The observed state afterwards, or None if the cluster is gone.

        Raises:
            ValidationFailedError: For immutable changes or invalid upgrades.
            AsyncOperationFailedError: If the update operation fails remotely.
        """
        return await self._with_deadline(
            self._update(current, spec),
            self._config.cluster_create_timeout_seconds,
            "Cluster update",
            managed_application_id=current.id,
        )

    async def _update(self, current: ClusterState, spec: ClusterSpec) -> ClusterState | None:
        try:
            app = await self._resources.get_by_id(current.id)
        except NotFoundError:
            logger.warning(
                "No HCS cluster found; removing from state",
                extra=self._context(managed_application_id=current.id),
            )
            return None

        identity = resolve_identity(app, current.cluster_name)
        context = self._context(managed_application_id=app.id)
        plan = plan_update(current, spec)

        if plan.immutable:
            raise ValidationFailedError(
                f"cannot change {', '.join(plan.immutable)} of an existing HCS cluster; "
                "delete and re-create it instead",
                **context,
            )

        update = plan.cluster_update
        if not update.is_empty:
            await self._update_cluster(app, identity, update)

        if plan.tags is not None:
            result = await self._resources.update_tags(
                identity.resource_group_name, app.name, plan.tags
            )
            match result.outcome:
                case CallOutcome.SUCCESS:
                    logger.info("Updated managed application tags", extra=context)
                case CallOutcome.ACCEPTED_ASYNC:
                    logger.info(
                        "Managed application tags update accepted",
                        extra={**context, "status_code": result.status_code},
                    )
                case CallOutcome.FAILED:
                    raise result.error or RemoteAPIError(
                        "unable to update Managed Application tags",
                        status_code=result.status_code,
                        **context,
                    )

        state = await self._observe(app, current.cluster_name)
        return state.model_copy(
            update={
                "min_consul_version": spec.min_consul_version or current.min_consul_version,
                "consul_root_token_accessor_id": current.consul_root_token_accessor_id,
                "consul_root_token_secret_id": current.consul_root_token_secret_id,
            }
        )

    async def _update_cluster(
        self,
        app: ManagedApplication,
        identity: ResolvedClusterIdentity,
        update: ClusterUpdate,
    ) -> None:
        context = self._context(
            managed_application_id=app.id, consul_version=update.consul_version
        )
        if update.consul_version:
            # Upgrade targets are cluster-scoped, not the global catalog
            upgrades = await self._actions.list_upgrade_versions(identity.managed_resource_group_id)
            if not upgrades.versions:
                raise ValidationFailedError(NO_UPGRADE_VERSIONS_MESSAGE, **context)
            candidates = from_ama_versions(upgrades.versions)
            if not is_valid_version(update.consul_version, candidates):
                raise ValidationFailedError(
                    f"specified Consul version ({update.consul_version}) is unavailable; "
                    f"must be one of: {[str(v) for v in candidates]}",
                    **context,
                )

        logger.info(
            "Updating HCS cluster",
            extra={**context, "audit_logging": update.audit_logging is not None},
        )
        response = await self._actions.update_cluster(identity.managed_resource_group_id, update)
        await self._wait_operation(
            response.operation.id, identity.managed_resource_group_id, app.name
        )

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(self, current: ClusterState) -> None:
        """Delete a cluster, then wait out the post-delete cool-down.

        A cluster that no longer exists is deleted successfully.

        Raises:
            FederationInvariantViolation: If the cluster is the primary of a
                federation that still has secondaries.
            OperationCancelledError: On shutdown or deadline expiry.
        """
        await self._with_deadline(
            self._delete(current),
            self._config.cluster_delete_timeout_seconds,
            "Cluster delete",
            managed_application_id=current.id,
        )

    async def _delete(self, current: ClusterState) -> None:
        try:
            app = await self._resources.get_by_id(current.id)
        except NotFoundError:
            logger.warning(
                "No HCS cluster found; nothing to delete",
                extra=self._context(managed_application_id=current.id),
            )
            return

        identity = resolve_identity(app, current.cluster_name)
        try:
            federation = await self._actions.get_federation(
                identity.managed_resource_group_id, identity.resource_group_name
            )
        except HCSError as e:
            # An error here means the cluster is not part of a federation
            logger.debug("Cluster is not federated", extra={"error": str(e)})
            federation = None

        if is_primary_with_secondaries(app.name, identity.resource_group_name, federation):
            raise FederationInvariantViolation(
                "unable to delete primary datacenter of a federation before all secondary "
                "datacenters are deleted",
                **self._context(
                    managed_application=app.name, resource_group=identity.resource_group_name
                ),
            )

        logger.info("Deleting HCS cluster", extra=self._context(managed_application_id=app.id))
        completion = await self._resources.begin_delete_by_id(app.id)
        await completion.wait()
        await self._delete_cooldown()
        logger.info("HCS cluster deleted", extra=self._context(managed_application_id=app.id))

    async def _delete_cooldown(self) -> None:
        # Azure rejects re-creating a same-named managed application while the
        # cancelled purchase is still settling.
        seconds = self._config.delete_cooldown_seconds
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except TimeoutError:
            return
        raise OperationCancelledError("context cancelled during post-delete cool-down")

    # =========================================================================
    # Import
    # =========================================================================

    async def import_cluster(self, import_id: str) -> ClusterState:
        """Start tracking an existing cluster from ``managed_application_id:cluster_name``.

        Raises:
            ValidationFailedError: If the import id is malformed.
            NotFoundError: If the managed application does not exist.
        """
        app_id, cluster_name = parse_import_id(import_id)
        parse_resource_group_name(app_id)
        state = await self.read(app_id, cluster_name)
        if state is None:
            raise NotFoundError(
                f"no HCS cluster found for import id {import_id}",
                **self._context(managed_application_id=app_id),
            )
        return state

    # =========================================================================
    # Reconciliation loop
    # =========================================================================

    async def reconcile(self, spec: ClusterSpec, tracked: ClusterState | None) -> ReconcileResult:
        """Run one reconciliation of ``spec`` against the tracked state.

        A tracked cluster that vanished remotely is re-created. In dry-run
        mode nothing is changed; the intended action is logged and reported.
        """
        result = ReconcileResult(
            resource_group_name=spec.resource_group_name,
            managed_application_name=spec.managed_application_name,
            dry_run=self._config.dry_run,
            state=tracked,
        )
        try:
            current = None
            if tracked is not None:
                current = await self.read(tracked.id, tracked.cluster_name)
                if current is not None:
                    current = current.model_copy(
                        update={
                            "min_consul_version": tracked.min_consul_version,
                            "consul_root_token_accessor_id": tracked.consul_root_token_accessor_id,
                            "consul_root_token_secret_id": tracked.consul_root_token_secret_id,
                        }
                    )
                result.state = current

            if current is None:
                result.action = ReconcileAction.CREATE
                if self._config.dry_run:
                    logger.info("Dry run: would create HCS cluster", extra=self._result_context(result))
                else:
                    result.state = await self.create(spec)
            else:
                plan = plan_update(current, spec)
                result.changes = plan.describe()
                if not plan.is_empty:
                    result.action = ReconcileAction.UPDATE
                    if self._config.dry_run:
                        logger.info(
                            "Dry run: would update HCS cluster",
                            extra={**self._result_context(result), "changes": result.changes},
                        )
                    else:
                        result.state = await self.update(current, spec)
        except HCSError as e:
            result.error = e

        result.end_time = datetime.now(UTC)
        return result

    async def run(self, store: StateStore) -> None:
        """Reconcile the cluster spec on an interval until shutdown."""
        logger.info(
            "Starting reconciler",
            extra={
                "spec_path": str(self._config.spec_path),
                "interval_seconds": self._config.reconcile_interval_seconds,
                "dry_run": self._config.dry_run,
                "correlation_id": self._config.correlation_id,
            },
        )

        while not self._shutdown_event.is_set():
            result = await self._reconcile_once(store)
            self._log_result(result)

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._config.reconcile_interval_seconds,
                )
            except TimeoutError:
                pass

        logger.info("Reconciler shutdown complete")

    async def _reconcile_once(self, store: StateStore) -> ReconcileResult:
        try:
            spec = load_spec(self._config.spec_path, ClusterSpec)
        except SpecLoadError as e:
            logger.error("Failed to load spec", extra={"error": str(e)})
            return ReconcileResult(error=e, end_time=datetime.now(UTC))

        try:
            tracked = store.load_cluster(spec.resource_group_name, spec.managed_application_name)
            result = await self.reconcile(spec, tracked)
            if not result.dry_run:
                if result.state is not None:
                    store.save_cluster(result.state)
                elif tracked is not None and result.success:
                    store.delete_cluster(spec.resource_group_name, spec.managed_application_name)
        except Exception as e:
            logger.exception("Unexpected error during reconciliation")
            return ReconcileResult(
                resource_group_name=spec.resource_group_name,
                managed_application_name=spec.managed_application_name,
                error=e,
                end_time=datetime.now(UTC),
            )
        return result

    def _result_context(self, result: ReconcileResult) -> dict[str, Any]:
        return self._context(
            managed_application=result.managed_application_name,
            resource_group=result.resource_group_name,
        )

    def _log_result(self, result: ReconcileResult) -> None:
        """Log reconciliation result with structured data."""
        extra: dict[str, Any] = {
            **self._result_context(result),
            "action": result.action.value,
            "changes": result.changes,
            "dry_run": result.dry_run,
            "duration_seconds": result.duration_seconds,
        }
        if result.state is not None:
            extra["state"] = result.state.state
            extra["consul_version"] = result.state.consul_version

        if result.error is not None:
            extra["error"] = str(result.error)
            extra["error_type"] = type(result.error).__name__
            logger.error("Reconciliation failed", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)
