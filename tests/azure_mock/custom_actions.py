"""Mock custom-action endpoint of HCS managed applications.

Stands in for the azure-core PipelineClient: ``send_request`` routes on the
action at the end of the URL path and answers from MockHCSState.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from .hcs_state import NEVER_RESTORED_AT, ActionCall, MockHCSState, make_federation_token

CUSTOM_PROVIDER_PATH = "/providers/Microsoft.CustomProviders/resourceProviders/public/"


class MockHttpResponse:
    """Just enough of azure.core.rest.HttpResponse."""

    def __init__(self, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def json(self) -> Any:
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body

    def text(self) -> str:
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _not_found(what: str) -> MockHttpResponse:
    return MockHttpResponse(404, {"error": {"code": "NotFound", "message": f"{what} not found"}})


class MockPipelineClient:
    """Routes custom-action requests to in-memory handlers."""

    def __init__(self, state: MockHCSState, base_url: str = "", **kwargs: Any) -> None:
        self._state = state
        self.base_url = base_url
        self.kwargs = kwargs
        self._handlers: dict[str, Callable[[str, dict[str, Any]], MockHttpResponse]] = {
            "createToken": self._create_token,
            "listConsulUpgradeVersions": self._list_upgrade_versions,
            "update": self._update,
            "config": self._config,
            "getFederation": self._get_federation,
            "createFederationToken": self._create_federation_token,
            "createSnapshot": self._create_snapshot,
            "getSnapshot": self._get_snapshot,
            "deleteSnapshot": self._delete_snapshot,
            "renameSnapshot": self._rename_snapshot,
            "operation": self._operation,
        }

    def send_request(self, request: Any, **kwargs: Any) -> MockHttpResponse:
        path = urlsplit(request.url).path
        mrg_id, _, action = path.partition(CUSTOM_PROVIDER_PATH)
        body = json.loads(request.content) if request.content else {}
        self._state.action_calls.append(ActionCall(request.method, action, mrg_id, body))

        action_name = action.split("/")[0]
        failure = self._state.action_failures.get(action_name)
        if failure is not None:
            return MockHttpResponse(failure, f"simulated failure of {action_name}")

        if action_name == "consulClusters":
            return self._fetch_cluster(mrg_id, action.split("/", 1)[1])

        handler = self._handlers.get(action_name)
        if handler is None:
            return _not_found(f"action {action}")
        return handler(mrg_id, body)

    # =========================================================================
    # Cluster
    # =========================================================================

    def _fetch_cluster(self, mrg_id: str, cluster_name: str) -> MockHttpResponse:
        cluster = self._state.clusters.get(mrg_id)
        if cluster is None or cluster.name != cluster_name:
            return _not_found(f"cluster {cluster_name}")
        return MockHttpResponse(200, {"name": cluster.name, "properties": dict(cluster.properties)})

    def _create_token(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        if mrg_id not in self._state.clusters:
            return _not_found("cluster")
        return MockHttpResponse(200, {"masterToken": self._state.mint_root_token()})

    def _list_upgrade_versions(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        return MockHttpResponse(200, {"versions": self._state.upgrade_versions.get(mrg_id)})

    def _update(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        cluster = self._state.clusters.get(mrg_id)
        if cluster is None:
            return _not_found("cluster")

        operation = self._state.start_operation()
        if operation.error_code is None:
            update = body.get("update", {})
            if update.get("consulVersion"):
                cluster.properties["consulCurrentVersion"] = update["consulVersion"]
            audit = update.get("auditLogging")
            if audit is not None:
                cluster.properties["auditLoggingEnabled"] = audit["enabled"]
                cluster.properties["auditLogStorageContainerUrl"] = audit.get(
                    "storageContainerUrl", ""
                )
        return MockHttpResponse(200, {"operation": {"id": operation.id, "state": "PENDING"}})

    def _config(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        config = self._state.agent_configs.get(mrg_id)
        if config is None:
            return _not_found("config")
        return MockHttpResponse(200, config)

    # =========================================================================
    # Federation
    # =========================================================================

    def _get_federation(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        view = self._state.federations.get(mrg_id)
        if view is None:
            return _not_found("federation")
        return MockHttpResponse(200, view)

    def _create_federation_token(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        app = self._state.application_for_mrg(mrg_id)
        if app is None:
            return _not_found("cluster")
        return MockHttpResponse(200, {"federationToken": make_federation_token(app.id)})

    # =========================================================================
    # Snapshots
    # =========================================================================

    def _create_snapshot(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        if mrg_id not in self._state.clusters:
            return _not_found("cluster")
        snapshot_id = str(uuid.uuid4())
        now = _now()
        self._state.snapshots[snapshot_id] = {
            "id": snapshot_id,
            "name": body["name"],
            "state": "COMPLETED",
            "size": "2048",
            "requestedAt": now,
            "finishedAt": now,
            "restoredAt": NEVER_RESTORED_AT,
            "productVersion": self._state.clusters[mrg_id].properties["consulCurrentVersion"],
            "type": "ON_DEMAND",
        }
        operation = self._state.start_operation()
        return MockHttpResponse(
            201,
            {"snapshotId": snapshot_id, "operation": {"id": operation.id, "state": "PENDING"}},
        )

    def _get_snapshot(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        snapshot = self._state.snapshots.get(body.get("snapshotId", ""))
        if snapshot is None:
            return _not_found("snapshot")
        return MockHttpResponse(200, {"snapshot": dict(snapshot)})

    def _rename_snapshot(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        snapshot = self._state.snapshots.get(body.get("snapshotId", ""))
        if snapshot is None:
            return _not_found("snapshot")
        snapshot["name"] = body["name"]
        return MockHttpResponse(200, {"snapshot": dict(snapshot)})

    def _delete_snapshot(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        if self._state.snapshots.pop(body.get("snapshotId", ""), None) is None:
            return _not_found("snapshot")
        operation = self._state.start_operation()
        return MockHttpResponse(200, {"operation": {"id": operation.id, "state": "PENDING"}})

    # =========================================================================
    # Operations
    # =========================================================================

    def _operation(self, mrg_id: str, body: dict[str, Any]) -> MockHttpResponse:
        operation = self._state.operations.get(body.get("operationId", ""))
        if operation is None:
            return _not_found("operation")

        operation.polls += 1
        if operation.polls < operation.polls_until_done:
            return MockHttpResponse(200, {"operation": {"id": operation.id, "state": "RUNNING"}})

        done: dict[str, Any] = {"id": operation.id, "state": "DONE"}
        if operation.error_code is not None:
            done["error"] = {"code": operation.error_code, "message": "simulated failure"}
        return MockHttpResponse(200, {"operation": done})
