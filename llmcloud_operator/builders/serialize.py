from functools import lru_cache
from typing import Any, Dict

from kubernetes.client import ApiClient


@lru_cache(maxsize=1)
def _api_client() -> ApiClient:
    return ApiClient()


def to_manifest(obj: Any) -> Dict[str, Any]:
    """Typed kubernetes model -> camelCase dict, dropping unset fields."""
    return _api_client().sanitize_for_serialization(obj)
