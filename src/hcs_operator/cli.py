"""HCS operator CLI (hcs).

One-shot counterparts of what the operator loop does, plus the read-only
lookups used to wire clusters into AKS.

Usage:
    hcs validate cluster.yaml              # Validate a spec document
    hcs cluster apply cluster.yaml         # Create or converge a cluster
    hcs cluster show RG APP                # Show the observed cluster
    hcs cluster import APP_ID:CLUSTER      # Start tracking an existing cluster
    hcs snapshot create snapshot.yaml      # Take a snapshot
    hcs root-token create RG APP           # Mint a new root token
    hcs data helm-config RG APP --aks-cluster-name AKS
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import BaseModel

from .config import Config, ConfigurationError
from .data_sources import DataSources
from .errors import HCSError
from .federation_token import FederationTokenReconciler
from .models import ClusterRef, ClusterSpec, SnapshotSpec
from .reconciler import ClusterReconciler
from .root_token import RootTokenReconciler
from .security import SecretlessViolationError
from .snapshot import SnapshotReconciler
from .spec_loader import SpecLoadError, load_spec
from .state import StateError, StateStore

T = TypeVar("T")

VERSION = "0.1.0"

# Secrets only printed by the command that minted them
SECRET_FIELDS = {"consul_root_token_secret_id", "secret_id", "kubernetes_secret", "token"}


def load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a reconciler call, turning reconciliation failures into CLI errors."""
    try:
        return asyncio.run(coro)
    except HCSError as e:
        raise click.ClickException(str(e)) from e


def echo_model(model: BaseModel, *, show_secrets: bool = False) -> None:
    exclude = None if show_secrets else SECRET_FIELDS
    click.echo(model.model_dump_json(indent=2, exclude=exclude))


def read_spec(path: Path, expected: type[Any] | None) -> Any:
    try:
        return load_spec(path, expected)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def open_store(config: Config) -> StateStore:
    return StateStore(config.state_dir)


def _state_or_fail(state: T | None, what: str) -> T:
    if state is None:
        raise click.ClickException(f"No tracked {what} found")
    return state


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=VERSION, prog_name="hcs")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
def cli(verbose: bool) -> None:
    """HCS operator CLI (hcs).

    Manage HashiCorp Consul Service clusters on Azure from desired-state
    documents. Configuration is read from the same environment variables
    the operator uses.

    \b
    Quick Start:
        hcs validate cluster.yaml
        hcs cluster apply cluster.yaml --dry-run
        hcs cluster apply cluster.yaml
    """
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("azure").setLevel(logging.WARNING)


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(spec_file: Path) -> None:
    """Validate a spec document without contacting Azure."""
    spec = read_spec(spec_file, None)
    click.secho(f"✓ {type(spec).__name__} is valid: {spec_file}", fg="green")


# =============================================================================
# Cluster Commands
# =============================================================================


@cli.group()
def cluster() -> None:
    """Cluster commands: apply, show, delete, import."""
    pass


@cluster.command("apply")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Only report the intended action")
def cluster_apply(spec_file: Path, dry_run: bool) -> None:
    """Create the cluster in SPEC_FILE, or converge it if already tracked."""
    spec = read_spec(spec_file, ClusterSpec)
    config = load_config()
    if dry_run:
        config = dataclasses.replace(config, dry_run=True)
    store = open_store(config)

    tracked = store.load_cluster(spec.resource_group_name, spec.managed_application_name)
    result = run_async(ClusterReconciler(config).reconcile(spec, tracked))

    if result.error is not None:
        raise click.ClickException(str(result.error))

    if result.dry_run:
        click.echo(f"Would {result.action.value}: {spec.managed_application_name}")
        for change in result.changes:
            click.echo(f"  - {change}")
        return

    if result.state is not None:
        store.save_cluster(result.state)
    click.secho(
        f"✓ {spec.managed_application_name}: {result.action.value} "
        f"({result.duration_seconds:.1f}s)",
        fg="green",
    )
    if result.state is not None:
        echo_model(result.state)


@cluster.command("show")
@click.argument("resource_group")
@click.argument("name")
@click.option("--cluster-name", help="Cluster name, if it differs from the default")
def cluster_show(resource_group: str, name: str, cluster_name: str | None) -> None:
    """Show the observed state of a cluster."""
    config = load_config()
    tracked = open_store(config).load_cluster(resource_group, name)
    reconciler = ClusterReconciler(config)

    if tracked is not None:
        state = run_async(reconciler.read(tracked.id, cluster_name or tracked.cluster_name))
    else:
        state = run_async(reconciler.read_by_name(resource_group, name, cluster_name))
    echo_model(_state_or_fail(state, "or remote cluster"))


@cluster.command("delete")
@click.argument("resource_group")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def cluster_delete(resource_group: str, name: str, yes: bool) -> None:
    """Delete a cluster and stop tracking it."""
    config = load_config()
    store = open_store(config)
    reconciler = ClusterReconciler(config)

    current = store.load_cluster(resource_group, name)
    if current is None:
        current = run_async(reconciler.read_by_name(resource_group, name))
    if current is None:
        click.echo(f"Cluster {name} does not exist")
        return

    if not yes:
        click.confirm(f"Delete HCS cluster {name} in {resource_group}?", abort=True)
    run_async(reconciler.delete(current))
    store.delete_cluster(resource_group, name)
    click.secho(f"✓ Deleted {name}", fg="green")


@cluster.command("import")
@click.argument("import_id")
def cluster_import(import_id: str) -> None:
    """Track an existing cluster by MANAGED_APPLICATION_ID:CLUSTER_NAME."""
    config = load_config()
    state = run_async(ClusterReconciler(config).import_cluster(import_id))
    path = open_store(config).save_cluster(state)
    click.secho(f"✓ Imported {state.managed_application_name} into {path}", fg="green")


# =============================================================================
# Snapshot Commands
# =============================================================================


@cli.group()
def snapshot() -> None:
    """Snapshot commands: create, show, rename, delete."""
    pass


@snapshot.command("create")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def snapshot_create(spec_file: Path) -> None:
    """Take the snapshot described in SPEC_FILE."""
    spec = read_spec(spec_file, SnapshotSpec)
    config = load_config()
    state = run_async(SnapshotReconciler(config).create(spec))
    state = _state_or_fail(state, "cluster owning the snapshot")
    open_store(config).save_snapshot(state, spec.snapshot_name)
    echo_model(state)


@snapshot.command("show")
@click.argument("resource_group")
@click.argument("name")
@click.argument("snapshot_name")
def snapshot_show(resource_group: str, name: str, snapshot_name: str) -> None:
    """Refresh and show a tracked snapshot."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(
        store.load_snapshot(resource_group, name, snapshot_name), "snapshot"
    )
    state = run_async(SnapshotReconciler(config).read(tracked))
    if state is None:
        store.delete_snapshot(resource_group, name, snapshot_name)
        raise click.ClickException(f"Snapshot {snapshot_name} no longer exists")
    store.save_snapshot(state, snapshot_name)
    echo_model(state)


@snapshot.command("rename")
@click.argument("resource_group")
@click.argument("name")
@click.argument("snapshot_name")
@click.argument("new_name")
def snapshot_rename(resource_group: str, name: str, snapshot_name: str, new_name: str) -> None:
    """Rename a tracked snapshot."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(
        store.load_snapshot(resource_group, name, snapshot_name), "snapshot"
    )
    state = run_async(SnapshotReconciler(config).rename(tracked, new_name))
    store.delete_snapshot(resource_group, name, snapshot_name)
    if state is None:
        raise click.ClickException(f"Snapshot {snapshot_name} no longer exists")
    store.save_snapshot(state, new_name)
    echo_model(state)


@snapshot.command("delete")
@click.argument("resource_group")
@click.argument("name")
@click.argument("snapshot_name")
def snapshot_delete(resource_group: str, name: str, snapshot_name: str) -> None:
    """Delete a tracked snapshot."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(
        store.load_snapshot(resource_group, name, snapshot_name), "snapshot"
    )
    run_async(SnapshotReconciler(config).delete(tracked))
    store.delete_snapshot(resource_group, name, snapshot_name)
    click.secho(f"✓ Deleted snapshot {snapshot_name}", fg="green")


# =============================================================================
# Token Commands
# =============================================================================


@cli.group("root-token")
def root_token() -> None:
    """Root token commands: create, delete."""
    pass


@root_token.command("create")
@click.argument("resource_group")
@click.argument("name")
def root_token_create(resource_group: str, name: str) -> None:
    """Mint a root token; any previous root token stops working."""
    config = load_config()
    ref = ClusterRef(resource_group_name=resource_group, managed_application_name=name)
    state = run_async(RootTokenReconciler(config).create(ref))
    open_store(config).save_root_token(state)
    echo_model(state, show_secrets=True)


@root_token.command("delete")
@click.argument("resource_group")
@click.argument("name")
def root_token_delete(resource_group: str, name: str) -> None:
    """Invalidate the tracked root token."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(store.load_root_token(resource_group, name), "root token")
    run_async(RootTokenReconciler(config).delete(tracked))
    store.delete_root_token(resource_group, name)
    click.secho("✓ Root token invalidated", fg="green")


@cli.group("federation-token")
def federation_token() -> None:
    """Federation token commands: create, show, delete."""
    pass


@federation_token.command("create")
@click.argument("resource_group")
@click.argument("name")
def federation_token_create(resource_group: str, name: str) -> None:
    """Mint a federation token from a primary cluster."""
    config = load_config()
    ref = ClusterRef(resource_group_name=resource_group, managed_application_name=name)
    state = run_async(FederationTokenReconciler(config).create(ref))
    open_store(config).save_federation_token(state)
    echo_model(state, show_secrets=True)


@federation_token.command("show")
@click.argument("resource_group")
@click.argument("name")
def federation_token_show(resource_group: str, name: str) -> None:
    """Show a tracked federation token."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(
        store.load_federation_token(resource_group, name), "federation token"
    )
    state = run_async(FederationTokenReconciler(config).read(tracked))
    if state is None:
        store.delete_federation_token(resource_group, name)
        raise click.ClickException(f"Primary cluster {name} no longer exists")
    echo_model(state, show_secrets=True)


@federation_token.command("delete")
@click.argument("resource_group")
@click.argument("name")
def federation_token_delete(resource_group: str, name: str) -> None:
    """Stop tracking a federation token."""
    config = load_config()
    store = open_store(config)
    tracked = _state_or_fail(
        store.load_federation_token(resource_group, name), "federation token"
    )
    run_async(FederationTokenReconciler(config).delete(tracked))
    store.delete_federation_token(resource_group, name)
    click.secho("✓ Federation token forgotten", fg="green")


# =============================================================================
# Data Commands
# =============================================================================


@cli.group()
def data() -> None:
    """Read-only lookups: versions, plan, cluster, kube-secret, helm-config."""
    pass


@data.command("versions")
def data_versions() -> None:
    """Show the Consul versions HCS offers."""
    echo_model(run_async(DataSources(load_config()).consul_versions()))


@data.command("plan")
def data_plan() -> None:
    """Show the default marketplace plan."""
    echo_model(run_async(DataSources(load_config()).plan_defaults()))


@data.command("cluster")
@click.argument("resource_group")
@click.argument("name")
@click.option("--cluster-name", help="Cluster name, if it differs from the default")
def data_cluster(resource_group: str, name: str, cluster_name: str | None) -> None:
    """Show a cluster without tracking it."""
    state = run_async(DataSources(load_config()).cluster(resource_group, name, cluster_name))
    if state is None:
        click.echo(f"Cluster {name} does not exist")
        return
    echo_model(state)


@data.command("kube-secret")
@click.argument("resource_group")
@click.argument("name")
def data_kube_secret(resource_group: str, name: str) -> None:
    """Print the Kubernetes Secret Consul agents need."""
    secret = run_async(DataSources(load_config()).agent_kube_secret(resource_group, name))
    click.echo(secret.secret)


@data.command("helm-config")
@click.argument("resource_group")
@click.argument("name")
@click.option("--aks-cluster-name", required=True, help="AKS cluster running the agents")
@click.option("--aks-resource-group", help="AKS resource group (default: RESOURCE_GROUP)")
@click.option("--expose-gossip-ports", is_flag=True, help="Expose gossip ports on the agents")
def data_helm_config(
    resource_group: str,
    name: str,
    aks_cluster_name: str,
    aks_resource_group: str | None,
    expose_gossip_ports: bool,
) -> None:
    """Print Helm values for Consul agents on an AKS cluster."""
    helm = run_async(
        DataSources(load_config()).agent_helm_config(
            resource_group, name, aks_cluster_name, aks_resource_group, expose_gossip_ports
        )
    )
    click.echo(helm.config)


@data.command("federation-token")
@click.argument("resource_group")
@click.argument("name")
def data_federation_token(resource_group: str, name: str) -> None:
    """Mint a federation token if the cluster is a primary with secondaries."""
    config = load_config()
    ref = ClusterRef(resource_group_name=resource_group, managed_application_name=name)
    state = run_async(FederationTokenReconciler(config).lookup(ref))
    if state is None:
        click.echo(f"Cluster {name} is not the primary of a federation")
        return
    echo_model(state, show_secrets=True)


def main() -> None:
    """Entry point for the CLI."""
    try:
        cli()
    except StateError as e:
        click.secho(f"State error: {e}", fg="red", err=True)
        sys.exit(1)
    except SecretlessViolationError as e:
        click.secho(f"Security violation: {e}", fg="red", err=True)
        sys.exit(2)


if __name__ == "__main__":
    main()
