"""Tests for spec document loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from hcs_operator.config import MAX_SPEC_FILE_SIZE_BYTES
from hcs_operator.models import ClusterRef, ClusterSpec, SnapshotSpec
from hcs_operator.spec_loader import SpecLoadError, load_spec

CLUSTER = {
    "resourceGroupName": "rg-consul",
    "managedApplicationName": "consul-prod",
    "email": "ops@example.com",
    "clusterMode": "Production",
}


def write(path: Path, document: object) -> Path:
    path.write_text(yaml.safe_dump(document))
    return path


class TestLoadSpec:
    """Tests for load_spec."""

    def test_flat_document_defaults_to_cluster(self, tmp_path: Path) -> None:
        spec = load_spec(write(tmp_path / "cluster.yaml", CLUSTER))

        assert isinstance(spec, ClusterSpec)
        assert spec.managed_application_name == "consul-prod"

    def test_flat_document_as_expected_kind(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "snapshot.yaml",
            {
                "resourceGroupName": "rg-consul",
                "managedApplicationName": "consul-prod",
                "snapshotName": "nightly",
            },
        )

        spec = load_spec(path, SnapshotSpec)

        assert isinstance(spec, SnapshotSpec)
        assert spec.snapshot_name == "nightly"

    def test_wrapped_document(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "token.yaml",
            {
                "apiVersion": "hcs-operator/v1",
                "kind": "RootToken",
                "spec": {"resourceGroupName": "rg-consul", "managedApplicationName": "consul-prod"},
            },
        )

        spec = load_spec(path)

        assert type(spec) is ClusterRef

    def test_kind_mismatch(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "cluster.yaml",
            {"apiVersion": "hcs-operator/v1", "kind": "Snapshot", "spec": {}},
        )

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path, ClusterSpec)

        assert "Expected kind ['Cluster']" in str(exc_info.value)
        assert "found 'Snapshot'" in str(exc_info.value)

    def test_unknown_kind(self, tmp_path: Path) -> None:
        path = write(
            tmp_path / "spec.yaml",
            {"apiVersion": "hcs-operator/v1", "kind": "Gateway", "spec": {}},
        )

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path)

        assert "Unknown spec kind 'Gateway'" in str(exc_info.value)

    def test_validation_errors_listed(self, tmp_path: Path) -> None:
        path = write(tmp_path / "cluster.yaml", {**CLUSTER, "clusterMode": "Huge"})

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path, ClusterSpec)

        assert "Validation failed for" in str(exc_info.value)
        assert "clusterMode" in str(exc_info.value)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(tmp_path / "missing.yaml")

        assert "Spec file not found" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.yaml"
        path.write_text("resourceGroupName: [unclosed")

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = write(tmp_path / "cluster.yaml", ["rg-consul", "consul-prod"])

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path)

        assert "must contain a YAML mapping" in str(exc_info.value)

    def test_too_large(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.yaml"
        path.write_text("#" * (MAX_SPEC_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError) as exc_info:
            load_spec(path)

        assert "exceeds maximum size" in str(exc_info.value)
