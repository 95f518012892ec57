"""CustomResourceDefinitions shipped with the operator and their installation."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import kopf
import yaml
from kubernetes.client import ApiextensionsV1Api
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)

CRD_DIR = Path(__file__).resolve().parent / "crds"


def load_crds(directory: Path = CRD_DIR) -> List[Dict[str, Any]]:
    manifests = []
    for path in sorted(directory.glob("*.yaml")):
        with path.open() as fh:
            manifests.append(yaml.safe_load(fh))
    return manifests


def ensure_crds(api: ApiextensionsV1Api, manifests: List[Dict[str, Any]] = None) -> None:
    """Create every CRD that is not installed yet; existing ones are left alone."""
    for manifest in manifests if manifests is not None else load_crds():
        name = manifest["metadata"]["name"]
        try:
            api.create_custom_resource_definition(body=manifest)
            logger.info(f"CRD {name} created")
        except ApiException as exc:
            if exc.status == 409:  # already present
                logger.debug(f"CRD {name} already present")
            elif exc.status == 429:
                raise kopf.TemporaryError("API busy, retrying", delay=10) from exc
            else:
                raise kopf.PermanentError(f"CRD {name} creation failed: {exc.status} {exc.reason}") from exc
