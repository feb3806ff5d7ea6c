"""Tracked state persisted as JSON files under the state directory.

One file per tracked resource, named after the identifiers the desired-state
documents carry, so a spec always finds its tracked counterpart again:

    clusters/{resource_group}__{app}.json
    snapshots/{resource_group}__{app}__{snapshot_name}.json
    root-tokens/{resource_group}__{app}.json
    federation-tokens/{resource_group}__{app}.json
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .config import MAX_STATE_FILE_SIZE_BYTES
from .models import ClusterState, FederationTokenState, RootTokenState, SnapshotState

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

CLUSTERS = "clusters"
SNAPSHOTS = "snapshots"
ROOT_TOKENS = "root-tokens"
FEDERATION_TOKENS = "federation-tokens"


class StateError(Exception):
    """Raised when a state file cannot be read or written."""

    pass


class StateStore:
    """File-backed store of tracked resource state."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def _path(self, kind: str, *parts: str) -> Path:
        return self._state_dir / kind / ("__".join(parts) + ".json")

    def _load(self, model: type[S], kind: str, *parts: str) -> S | None:
        path = self._path(kind, *parts)
        if not path.exists():
            return None

        try:
            if path.stat().st_size > MAX_STATE_FILE_SIZE_BYTES:
                raise StateError(
                    f"State file exceeds maximum size of {MAX_STATE_FILE_SIZE_BYTES} bytes: {path}"
                )
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateError(f"Failed to read state file {path}: {e}") from e

        try:
            return model.model_validate_json(content)
        except ValidationError as e:
            raise StateError(f"Corrupt state file {path}: {e}") from e

    def _save(self, state: BaseModel, kind: str, *parts: str) -> Path:
        path = self._path(kind, *parts)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StateError(f"Failed to write state file {path}: {e}") from e
        logger.debug("Saved state", extra={"path": str(path)})
        return path

    def _delete(self, kind: str, *parts: str) -> bool:
        path = self._path(kind, *parts)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StateError(f"Failed to delete state file {path}: {e}") from e
        logger.info("Removed tracked state", extra={"path": str(path)})
        return True

    # Clusters

    def load_cluster(self, resource_group: str, name: str) -> ClusterState | None:
        return self._load(ClusterState, CLUSTERS, resource_group, name)

    def save_cluster(self, state: ClusterState) -> Path:
        return self._save(
            state, CLUSTERS, state.resource_group_name, state.managed_application_name
        )

    def delete_cluster(self, resource_group: str, name: str) -> bool:
        return self._delete(CLUSTERS, resource_group, name)

    # Snapshots

    def load_snapshot(
        self, resource_group: str, name: str, snapshot_name: str
    ) -> SnapshotState | None:
        return self._load(SnapshotState, SNAPSHOTS, resource_group, name, snapshot_name)

    def save_snapshot(self, state: SnapshotState, snapshot_name: str | None = None) -> Path:
        """Save under ``snapshot_name``, which defaults to the observed name."""
        return self._save(
            state,
            SNAPSHOTS,
            state.resource_group_name,
            state.managed_application_name,
            snapshot_name or state.snapshot_name,
        )

    def delete_snapshot(self, resource_group: str, name: str, snapshot_name: str) -> bool:
        return self._delete(SNAPSHOTS, resource_group, name, snapshot_name)

    # Root tokens

    def load_root_token(self, resource_group: str, name: str) -> RootTokenState | None:
        return self._load(RootTokenState, ROOT_TOKENS, resource_group, name)

    def save_root_token(self, state: RootTokenState) -> Path:
        return self._save(
            state, ROOT_TOKENS, state.resource_group_name, state.managed_application_name
        )

    def delete_root_token(self, resource_group: str, name: str) -> bool:
        return self._delete(ROOT_TOKENS, resource_group, name)

    # Federation tokens

    def load_federation_token(
        self, resource_group: str, name: str
    ) -> FederationTokenState | None:
        return self._load(FederationTokenState, FEDERATION_TOKENS, resource_group, name)

    def save_federation_token(self, state: FederationTokenState) -> Path:
        return self._save(
            state, FEDERATION_TOKENS, state.resource_group_name, state.managed_application_name
        )

    def delete_federation_token(self, resource_group: str, name: str) -> bool:
        return self._delete(FEDERATION_TOKENS, resource_group, name)
