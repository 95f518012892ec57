"""Guest OS -> container-disk image resolution."""
from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "images.yaml"


def split_image_tag(image: str) -> tuple[str, str]:
    """Split ``repo:tag`` on the last colon; an untagged image is ``latest``."""
    repo, sep, tag = image.rpartition(":")
    if not sep or not repo:
        return image, "latest"
    return repo, tag


class OSImageCatalog:
    """Maps an (os, version) pair to a container-disk image.

    Lookup order: the pinned ``os:version`` entry, then the OS's default image
    re-tagged with ``version``, then the OS's default image, then the default
    image of the fallback OS. Resolution never fails for a catalog whose
    fallback OS has an entry.
    """

    def __init__(self, images: Mapping[str, str], fallback_os: str = "cirros"):
        if fallback_os not in images:
            raise ValueError(f"fallback OS {fallback_os!r} has no image in the catalog")
        self._images = MappingProxyType(dict(images))
        self.fallback_os = fallback_os

    @property
    def images(self) -> Mapping[str, str]:
        return self._images

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "OSImageCatalog":
        with Path(path).open() as fh:
            data = yaml.safe_load(fh) or {}
        images = data.get("images") or {}
        if not isinstance(images, dict):
            raise ValueError(f"{path}: 'images' must be a mapping")
        return cls({str(k): str(v) for k, v in images.items()}, fallback_os=data.get("fallback", "cirros"))

    @classmethod
    def default(cls) -> "OSImageCatalog":
        return cls.from_file(DEFAULT_CATALOG_PATH)

    def resolve(self, os_name: str, version: Optional[str] = None) -> str:
        if version:
            pinned = self._images.get(f"{os_name}:{version}")
            if pinned:
                return pinned
            base = self._images.get(os_name)
            if base:
                repo, _ = split_image_tag(base)
                return f"{repo}:{version}"
        image = self._images.get(os_name)
        if image:
            return image
        logger.warning("No image for OS %r (version %r), falling back to %s", os_name, version, self.fallback_os)
        return self._images[self.fallback_os]


def load_catalog(path: Optional[str] = None) -> OSImageCatalog:
    """Packaged catalog, or the YAML file at ``path`` when one is configured."""
    if path:
        logger.info("Loading OS image catalog from %s", path)
        return OSImageCatalog.from_file(path)
    return OSImageCatalog.default()
