"""Schema sources: where the registry fetches schema documents from."""

import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import quote

import requests
import yaml

from .exceptions import SchemaDocumentError, SchemaSourceError
from .models import Schema

logger = logging.getLogger(__name__)


class SchemaSource(ABC):
    """Fetches schemas for the SchemaRegistry."""

    @abstractmethod
    def fetch_all(self) -> List[Schema]:
        """Return every schema the source knows about."""

    @abstractmethod
    def fetch_by_name(self, name: str) -> Optional[Schema]:
        """Return the named schema, or None if the source does not have it."""


def _to_schema(document: Union[Schema, Dict[str, Any]], origin: str = None) -> Schema:
    if isinstance(document, Schema):
        return document
    return Schema.from_dict(document, document_name=origin)


class InMemorySchemaSource(SchemaSource):
    """
    Source backed by a list of schema documents or Schema objects.

    Useful for tests and for embedding schemas directly in code. add() and
    remove() change what the next fetch returns.
    """

    def __init__(self, documents: Iterable[Union[Schema, Dict[str, Any]]] = ()):
        self._schemas: Dict[str, Schema] = {}
        for document in documents:
            self.add(document)

    def add(self, document: Union[Schema, Dict[str, Any]]) -> Schema:
        schema = _to_schema(document, origin="in-memory")
        self._schemas[schema.name] = schema
        return schema

    def remove(self, name: str) -> None:
        self._schemas.pop(name, None)

    def fetch_all(self) -> List[Schema]:
        return list(self._schemas.values())

    def fetch_by_name(self, name: str) -> Optional[Schema]:
        return self._schemas.get(name)


class DirectorySchemaSource(SchemaSource):
    """
    Source reading schema documents from a directory.

    Every *.yaml, *.yml and *.json file is loaded; a file may contain a single
    document or a list of documents. Files are re-read on every fetch so a
    refresh picks up edits.
    """

    PATTERNS = ("*.yaml", "*.yml", "*.json")

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _files(self) -> List[Path]:
        if not self.directory.is_dir():
            raise SchemaSourceError(f"Schema directory not found: {self.directory}")
        files = set()
        for pattern in self.PATTERNS:
            files.update(self.directory.glob(pattern))
        return sorted(files)

    def _load_file(self, path: Path) -> List[Schema]:
        try:
            with open(path) as f:
                if path.suffix == ".json":
                    content = json.load(f)
                else:
                    content = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise SchemaSourceError(f"Failed to read schema file {path}: {e}") from e

        if content is None:
            return []
        documents = content if isinstance(content, list) else [content]
        return [_to_schema(document, origin=str(path)) for document in documents]

    def fetch_all(self) -> List[Schema]:
        schemas = []
        for path in self._files():
            schemas.extend(self._load_file(path))
        return schemas

    def fetch_by_name(self, name: str) -> Optional[Schema]:
        # File names need not match schema names, so scan everything
        for schema in self.fetch_all():
            if schema.name == name:
                return schema
        return None


class HttpSchemaSource(SchemaSource):
    """
    Source backed by an HTTP schema service.

    Endpoints:
        GET {base_url}/schemas          -> JSON list of schema documents
        GET {base_url}/schemas/{name}   -> one schema document, 404 if unknown

    Connection errors and timeouts are retried up to retry_attempts times.
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 5000,
        retry_attempts: int = 3,
        session: requests.Session = None,
    ):
        if not base_url:
            raise ValueError("HttpSchemaSource requires a base_url")
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.retry_attempts = max(1, int(retry_attempts))
        self.session = session or requests.Session()

    def _get(self, url: str) -> Optional[Any]:
        last_error = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = self.session.get(url, timeout=self.timeout_ms / 1000.0)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                last_error = e
                logger.warning(
                    "Schema service request failed",
                    extra={"url": url, "attempt": attempt, "error": str(e)},
                )
                if attempt < self.retry_attempts:
                    time.sleep(min(0.1 * attempt, 1.0))
                continue

            if response.status_code == 404:
                return None
            try:
                response.raise_for_status()
                return response.json()
            except requests.exceptions.HTTPError as e:
                raise SchemaSourceError(f"Schema service error for {url}: {e}") from e
            except ValueError as e:
                raise SchemaSourceError(f"Schema service returned invalid JSON for {url}: {e}") from e

        raise SchemaSourceError(
            f"Failed to fetch {url} after {self.retry_attempts} attempts: {last_error}"
        )

    def fetch_all(self) -> List[Schema]:
        url = f"{self.base_url}/schemas"
        documents = self._get(url)
        if documents is None:
            raise SchemaSourceError(f"Schema listing not found at {url}")
        if not isinstance(documents, list):
            raise SchemaDocumentError("Expected a JSON list of schema documents", url)
        return [_to_schema(document, origin=url) for document in documents]

    def fetch_by_name(self, name: str) -> Optional[Schema]:
        url = f"{self.base_url}/schemas/{quote(name, safe='')}"
        document = self._get(url)
        if document is None:
            return None
        return _to_schema(document, origin=url)


def create_schema_source(config: Dict[str, Any], base_dir: Union[str, Path] = None) -> SchemaSource:
    """
    Build a schema source from the `schema_source` config block.

    Args:
        config: Dict with `type` ("directory" or "http") and type-specific keys
        base_dir: Directory that relative `location` values resolve against

    Returns:
        SchemaSource instance

    Raises:
        ValueError: If the source type is unknown or required keys are missing
    """
    source_type = (config.get("type") or "directory").lower()

    if source_type == "directory":
        location = config.get("location")
        if not location:
            raise ValueError("schema_source.location is required for a directory source")
        path = Path(location)
        if not path.is_absolute() and base_dir is not None:
            path = Path(base_dir) / path
        return DirectorySchemaSource(path.resolve())

    if source_type == "http":
        return HttpSchemaSource(
            base_url=config.get("base_url"),
            timeout_ms=config.get("timeout_ms", 5000),
            retry_attempts=config.get("retry_attempts", 3),
        )

    raise ValueError(f"Unsupported schema source type: {source_type}")
