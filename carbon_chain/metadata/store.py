"""
CarbonChain - Metadata Storage
================================
Storage off-chain dei metadata dei crediti (JSON pubblico).

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Backend:
- HttpMetadataStore: blob storage HTTP (PUT JSON, bearer token)
- LocalMetadataStore: filesystem locale, URI file:// (sviluppo)
"""

import json
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Dict, Any
from urllib.parse import unquote, urlparse

import requests

from carbon_chain.errors import ConfigError, MetadataUploadError
from carbon_chain.logging_setup import get_logger, PerformanceLogger


logger = get_logger("metadata")

METADATA_PREFIX = "carbon-credits"


def metadata_object_name() -> str:
    """carbon-credits/metadata-<ms>-<suffix>.json"""
    millis = int(time.time() * 1000)
    return f"{METADATA_PREFIX}/metadata-{millis}-{uuid.uuid4().hex[:8]}.json"


# ============================================================================
# INTERFACE
# ============================================================================

class MetadataStore(ABC):
    """Storage metadata: upload ritorna un URI pubblico"""

    @abstractmethod
    def upload_project_data(self, payload: Dict[str, Any]) -> str:
        """
        Carica payload JSON.

        Returns:
            str: URI del documento

        Raises:
            MetadataUploadError: Upload fallito
        """

    @abstractmethod
    def get_project_data(self, uri: str) -> Optional[Dict[str, Any]]:
        """Legge documento, None se non disponibile"""


# ============================================================================
# HTTP BLOB STORAGE
# ============================================================================

class HttpMetadataStore(MetadataStore):
    """
    Blob storage HTTP.

    PUT `{base_url}/carbon-credits/metadata-<ms>-<suffix>.json`; se la
    risposta contiene `url` è quello l'URI pubblico, altrimenti l'URL del PUT.

    Examples:
        >>> store = HttpMetadataStore("https://blob.example.com", token="...")
        >>> uri = store.upload_project_data({"projectId": "p1"})
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def upload_project_data(self, payload: Dict[str, Any]) -> str:
        url = f"{self.base_url}/{metadata_object_name()}"

        with PerformanceLogger(logger, "metadata_upload", threshold_ms=self.timeout * 1000):
            try:
                response = self.session.put(
                    url,
                    data=json.dumps(payload, default=str),
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                logger.error("Error uploading metadata", extra_data={"url": url, "error": str(e)})
                raise MetadataUploadError(
                    f"Metadata upload failed: {e}",
                    code="METADATA_UPLOAD_FAILED"
                ) from e

        public_url = url
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("url"):
                public_url = body["url"]
        except ValueError:
            pass

        logger.info("Metadata upload successful", extra_data={"uri": public_url})
        return public_url

    def get_project_data(self, uri: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.session.get(uri, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Error fetching metadata", extra_data={"uri": uri, "error": str(e)})
            return None


# ============================================================================
# LOCAL FILESYSTEM
# ============================================================================

class LocalMetadataStore(MetadataStore):
    """
    Metadata su filesystem locale.

    Examples:
        >>> store = LocalMetadataStore(Path("./data/metadata"))
        >>> store.upload_project_data({"projectId": "p1"})
        'file:///.../carbon-credits/metadata-1760000000000-ab12cd34.json'
    """

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir).resolve()

    def upload_project_data(self, payload: Dict[str, Any]) -> str:
        path = self.root_dir / metadata_object_name()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            raise MetadataUploadError(
                f"Metadata write failed: {e}",
                code="METADATA_UPLOAD_FAILED"
            ) from e

        uri = path.as_uri()
        logger.info("Metadata stored locally", extra_data={"uri": uri})
        return uri

    def get_project_data(self, uri: str) -> Optional[Dict[str, Any]]:
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            return None
        try:
            return json.loads(Path(unquote(parsed.path)).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error fetching metadata", extra_data={"uri": uri, "error": str(e)})
            return None


def create_metadata_store(config) -> MetadataStore:
    """Factory da PlatformSettings"""
    if config.metadata_backend == "http":
        if not config.metadata_base_url:
            raise ConfigError(
                "metadata_base_url required for http metadata backend",
                code="CONFIG_INVALID",
                details={"metadata_backend": "http"}
            )
        token = config.metadata_token.get_secret_value() if config.metadata_token else None
        return HttpMetadataStore(config.metadata_base_url, token, config.metadata_timeout_seconds)
    return LocalMetadataStore(config.metadata_dir)


__all__ = [
    "MetadataStore",
    "HttpMetadataStore",
    "LocalMetadataStore",
    "create_metadata_store",
    "metadata_object_name",
]
