"""Consul snapshots of a cluster.

Snapshots expire on a 30 day retention window outside user control, so a
snapshot that vanished is dropped from tracked state with a warning rather
than treated as a failure.
"""

from __future__ import annotations

import logging

from .ama_models import SnapshotProperties
from .errors import NotFoundError, RemoteAPIError
from .models import SnapshotSpec, SnapshotState
from .reconciler import ReconcilerBase
from .resource_manager import ManagedApplication

logger = logging.getLogger(__name__)

# Zero timestamp HCS reports for a snapshot that was never restored
NEVER_RESTORED_AT = "0001-01-01T00:00:00.000Z"

SNAPSHOT_EXPIRED_MESSAGE = (
    "Snapshot not found. The retention policy for snapshots is 30 days and this "
    "snapshot may have been deleted; keeping the snapshot spec creates a new snapshot"
)


def restored_at(value: str) -> str | None:
    """Return the restore time, or None for the never-restored sentinel."""
    if not value or value == NEVER_RESTORED_AT:
        return None
    return value


def snapshot_state_from(
    snapshot_id: str,
    resource_group_name: str,
    managed_application_name: str,
    snapshot: SnapshotProperties,
) -> SnapshotState:
    """Map snapshot properties onto tracked state.

    Raises:
        RemoteAPIError: If the reported size is not an integer.
    """
    try:
        size = int(snapshot.size or 0)
    except ValueError as e:
        raise RemoteAPIError(
            f"unable to parse snapshot size {snapshot.size!r}", snapshot_id=snapshot_id
        ) from e

    return SnapshotState(
        id=snapshot_id,
        resource_group_name=resource_group_name,
        managed_application_name=managed_application_name,
        snapshot_name=snapshot.name,
        state=snapshot.state,
        size=size,
        requested_at=snapshot.requested_at,
        finished_at=snapshot.finished_at,
        restored_at=restored_at(snapshot.restored_at),
    )


class SnapshotReconciler(ReconcilerBase):
    """Create, read, rename and delete snapshots."""

    async def create(self, spec: SnapshotSpec) -> SnapshotState | None:
        """Take a snapshot and wait for it to finish.

        Returns:
            The snapshot, or None if the owning cluster no longer exists.
        """
        return await self._with_deadline(
            self._create(spec),
            self._config.snapshot_timeout_seconds,
            "Snapshot create",
            managed_application=spec.managed_application_name,
            snapshot_name=spec.snapshot_name,
        )

    async def _create(self, spec: SnapshotSpec) -> SnapshotState | None:
        app = await self._find_owner(spec.resource_group_name, spec.managed_application_name)
        if app is None:
            return None

        response = await self._actions.create_snapshot(
            app.managed_resource_group_id, spec.resource_group_name, spec.snapshot_name
        )
        logger.info(
            "Snapshot requested",
            extra=self._context(
                managed_application=app.name,
                snapshot_id=response.snapshot_id,
                snapshot_name=spec.snapshot_name,
            ),
        )
        await self._wait_operation(response.operation.id, app.managed_resource_group_id, app.name)

        return await self._get(
            app, spec.resource_group_name, response.snapshot_id, spec.managed_application_name
        )

    async def read(self, tracked: SnapshotState) -> SnapshotState | None:
        """Refresh a tracked snapshot; None if it or its cluster is gone."""
        return await self._with_deadline(
            self._read(tracked),
            self._config.snapshot_timeout_seconds,
            "Snapshot read",
            snapshot_id=tracked.id,
        )

    async def _read(self, tracked: SnapshotState) -> SnapshotState | None:
        app = await self._find_owner(tracked.resource_group_name, tracked.managed_application_name)
        if app is None:
            return None
        return await self._get(
            app, tracked.resource_group_name, tracked.id, tracked.managed_application_name
        )

    async def _get(
        self,
        app: ManagedApplication,
        resource_group_name: str,
        snapshot_id: str,
        managed_application_name: str,
    ) -> SnapshotState | None:
        try:
            response = await self._actions.get_snapshot(
                app.managed_resource_group_id, resource_group_name, snapshot_id
            )
        except NotFoundError:
            logger.warning(SNAPSHOT_EXPIRED_MESSAGE, extra=self._context(snapshot_id=snapshot_id))
            return None
        return snapshot_state_from(
            snapshot_id, resource_group_name, managed_application_name, response.snapshot
        )

    async def rename(self, tracked: SnapshotState, snapshot_name: str) -> SnapshotState | None:
        """Rename a snapshot synchronously; None if it or its cluster is gone."""
        return await self._with_deadline(
            self._rename(tracked, snapshot_name),
            self._config.snapshot_timeout_seconds,
            "Snapshot rename",
            snapshot_id=tracked.id,
        )

    async def _rename(self, tracked: SnapshotState, snapshot_name: str) -> SnapshotState | None:
        app = await self._find_owner(tracked.resource_group_name, tracked.managed_application_name)
        if app is None:
            return None
        try:
            response = await self._actions.rename_snapshot(
                app.managed_resource_group_id,
                tracked.resource_group_name,
                tracked.id,
                snapshot_name,
            )
        except NotFoundError:
            logger.warning(SNAPSHOT_EXPIRED_MESSAGE, extra=self._context(snapshot_id=tracked.id))
            return None
        return snapshot_state_from(
            tracked.id,
            tracked.resource_group_name,
            tracked.managed_application_name,
            response.snapshot,
        )

    async def delete(self, tracked: SnapshotState) -> None:
        """Delete a snapshot and wait for the operation; absence is success."""
        await self._with_deadline(
            self._delete(tracked),
            self._config.snapshot_timeout_seconds,
            "Snapshot delete",
            snapshot_id=tracked.id,
        )

    async def _delete(self, tracked: SnapshotState) -> None:
        app = await self._find_owner(tracked.resource_group_name, tracked.managed_application_name)
        if app is None:
            return
        try:
            response = await self._actions.delete_snapshot(
                app.managed_resource_group_id, tracked.resource_group_name, tracked.id
            )
        except NotFoundError:
            logger.warning(SNAPSHOT_EXPIRED_MESSAGE, extra=self._context(snapshot_id=tracked.id))
            return
        await self._wait_operation(response.operation.id, app.managed_resource_group_id, app.name)
        logger.info("Snapshot deleted", extra=self._context(snapshot_id=tracked.id))
