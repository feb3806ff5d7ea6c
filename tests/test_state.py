"""Tests for the file-backed state store."""

from __future__ import annotations

from pathlib import Path

import pytest

from hcs_operator.models import ClusterState, RootTokenState, SnapshotState
from hcs_operator.state import StateError, StateStore


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state")


def cluster_state(**overrides: object) -> ClusterState:
    fields: dict[str, object] = {
        "id": "/subscriptions/s/resourceGroups/rg-consul/providers/"
        "Microsoft.Solutions/applications/consul-prod",
        "cluster_name": "consul-prod",
        "resource_group_name": "rg-consul",
        "managed_application_name": "consul-prod",
        "consul_version": "v1.9.0",
        "consul_root_token_secret_id": "root-secret",
    }
    fields.update(overrides)
    return ClusterState(**fields)


class TestStateStore:
    """Tests for StateStore."""

    def test_cluster_round_trip_keeps_secret(self, store: StateStore) -> None:
        path = store.save_cluster(cluster_state())

        loaded = store.load_cluster("rg-consul", "consul-prod")

        assert path == store.state_dir / "clusters" / "rg-consul__consul-prod.json"
        assert loaded == cluster_state()
        assert loaded is not None and loaded.consul_root_token_secret_id == "root-secret"

    def test_missing_is_none(self, store: StateStore) -> None:
        assert store.load_cluster("rg-consul", "consul-prod") is None
        assert store.load_snapshot("rg-consul", "consul-prod", "nightly") is None
        assert store.load_root_token("rg-consul", "consul-prod") is None
        assert store.load_federation_token("rg-consul", "consul-prod") is None

    def test_save_overwrites(self, store: StateStore) -> None:
        store.save_cluster(cluster_state())
        store.save_cluster(cluster_state(consul_version="v1.10.0"))

        loaded = store.load_cluster("rg-consul", "consul-prod")

        assert loaded is not None
        assert loaded.consul_version == "v1.10.0"
        assert not list((store.state_dir / "clusters").glob("*.tmp"))

    def test_delete(self, store: StateStore) -> None:
        store.save_cluster(cluster_state())

        assert store.delete_cluster("rg-consul", "consul-prod") is True
        assert store.delete_cluster("rg-consul", "consul-prod") is False
        assert store.load_cluster("rg-consul", "consul-prod") is None

    def test_snapshot_saved_under_requested_name(self, store: StateStore) -> None:
        snapshot = SnapshotState(
            id="snap-1",
            resource_group_name="rg-consul",
            managed_application_name="consul-prod",
            snapshot_name="nightly-2021-03-01",
            size=2048,
        )

        store.save_snapshot(snapshot, "nightly")

        assert store.load_snapshot("rg-consul", "consul-prod", "nightly") == snapshot
        assert store.load_snapshot("rg-consul", "consul-prod", "nightly-2021-03-01") is None

    def test_root_token(self, store: StateStore) -> None:
        token = RootTokenState(
            id="accessor",
            resource_group_name="rg-consul",
            managed_application_name="consul-prod",
            accessor_id="accessor",
            secret_id="secret",
            kubernetes_secret="manifest",
        )

        store.save_root_token(token)

        assert store.load_root_token("rg-consul", "consul-prod") == token
        assert store.delete_root_token("rg-consul", "consul-prod") is True

    def test_corrupt_file(self, store: StateStore) -> None:
        path = store.save_cluster(cluster_state())
        path.write_text("{not json")

        with pytest.raises(StateError) as exc_info:
            store.load_cluster("rg-consul", "consul-prod")

        assert "Corrupt state file" in str(exc_info.value)
