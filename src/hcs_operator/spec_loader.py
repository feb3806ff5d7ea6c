"""Desired-state documents for clusters, snapshots and tokens.

A document is either the bare spec mapping or a Kubernetes-style wrapper
with ``apiVersion``, ``kind`` and ``spec``. Files are size-limited and
validated before anything talks to Azure.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import SPEC_KINDS, ClusterSpec, get_spec_class

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when a spec document cannot be read or is invalid."""

    pass


def _describe(error: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    )


def read_document(spec_path: Path) -> dict[str, Any]:
    """Read a YAML mapping, enforcing the spec size limit."""
    try:
        if spec_path.stat().st_size > MAX_SPEC_FILE_SIZE_BYTES:
            raise SpecLoadError(
                f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
            )
        document = yaml.safe_load(spec_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SpecLoadError(f"Spec file not found: {spec_path}") from e
    except OSError as e:
        raise SpecLoadError(f"Cannot read spec file {spec_path}: {e}") from e
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(document, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")
    return document


def _unwrap(document: dict[str, Any], spec_path: Path) -> tuple[str | None, dict[str, Any]]:
    if "apiVersion" not in document or "spec" not in document:
        return None, document
    body = document["spec"]
    if not isinstance(body, dict):
        raise SpecLoadError(f"The spec section of {spec_path} must be a mapping")
    return document.get("kind"), body


def load_spec(spec_path: Path, expected: type[BaseModel] | None = None) -> Any:
    """Load and validate one desired-state document.

    Args:
        spec_path: YAML file to load.
        expected: Spec model the caller needs. A bare document is validated
            as this model, or as a cluster when nothing is expected.

    Returns:
        Validated spec instance.

    Raises:
        SpecLoadError: On unreadable files, unknown or unexpected kinds, and
            validation failures.
    """
    kind, body = _unwrap(read_document(spec_path), spec_path)

    if kind is None:
        spec_class: type[BaseModel] = expected or ClusterSpec
    else:
        try:
            spec_class = get_spec_class(kind)
        except ValueError as e:
            raise SpecLoadError(str(e)) from e
        if expected is not None and spec_class is not expected:
            wanted = [name for name, cls in SPEC_KINDS.items() if cls is expected]
            raise SpecLoadError(f"Expected kind {wanted} in {spec_path}, found '{kind}'")

    try:
        spec = spec_class.model_validate(body)
    except ValidationError as e:
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{_describe(e)}") from e

    logger.info("Loaded %s spec from %s", kind or spec_class.__name__, spec_path)
    return spec
