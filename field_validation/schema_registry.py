"""
Schema Registry - process-wide schema cache

Holds every loaded Schema keyed by name. Validation calls read it constantly;
loads and refreshes are rare.

## Consistency model

The cache is an immutable snapshot (a read-only mapping). Writers build a new
snapshot and publish it with a single reference assignment, so a reader sees
either the old snapshot or the new one, never a half-applied refresh. Reads
take no lock. Writers serialise on a lock so two concurrent refreshes cannot
drop each other's changes.

A fetch that fails leaves the current snapshot untouched and the error
propagates to the caller.

## Usage

```python
registry = SchemaRegistry(DirectorySchemaSource("schemas"))
registry.load()

schema = registry.get_schema("user_request_validation")   # None if unknown
rule = registry.get_rule("user_request_validation", "address.city")

registry.refresh_schema("user_request_validation")   # replace or evict one
registry.refresh_all()                                # reload everything
```

Create one registry per process and hand it to the ValidationEngine; tests
build their own around an InMemorySchemaSource.
"""

import logging
import threading
import time
from types import MappingProxyType
from typing import List, Mapping, Optional

from .models import Rule, Schema
from .schema_source import SchemaSource

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Read-mostly cache of schemas fetched from a SchemaSource."""

    def __init__(self, schema_source: SchemaSource):
        self.schema_source = schema_source
        self._schemas: Mapping[str, Schema] = MappingProxyType({})
        self._write_lock = threading.Lock()
        self._loaded_at: Optional[float] = None

    def _publish(self, schemas: dict) -> None:
        self._schemas = MappingProxyType(schemas)
        self._loaded_at = time.time()

    def load(self) -> int:
        """
        Bulk-fetch every schema from the source and replace the cache.

        Returns:
            Number of schemas loaded
        """
        with self._write_lock:
            fetched = self.schema_source.fetch_all()
            schemas = {}
            for schema in fetched:
                if schema.name in schemas:
                    logger.warning(
                        "Duplicate schema name, later definition wins",
                        extra={"schema_name": schema.name},
                    )
                schemas[schema.name] = schema
            self._publish(schemas)

        logger.info("Schema registry loaded", extra={"schema_count": len(schemas)})
        return len(schemas)

    def refresh_all(self) -> int:
        """
        Reload every schema.

        Names no longer provided by the source are evicted. The new snapshot is
        published only after the fetch succeeds.
        """
        return self.load()

    def refresh_schema(self, name: str) -> Optional[Schema]:
        """
        Re-fetch one schema by name.

        Returns:
            The new Schema, or None if the source no longer has it (in which
            case it is evicted from the cache)
        """
        with self._write_lock:
            schema = self.schema_source.fetch_by_name(name)
            schemas = dict(self._schemas)
            if schema is not None:
                schemas[name] = schema
            else:
                schemas.pop(name, None)
            self._publish(schemas)

        if schema is None:
            logger.info("Schema evicted on refresh", extra={"schema_name": name})
        else:
            logger.info("Schema refreshed", extra={"schema_name": name})
        return schema

    def get_schema(self, name: str) -> Optional[Schema]:
        return self._schemas.get(name)

    def get_rule(self, name: str, field_path: str) -> Optional[Rule]:
        schema = self._schemas.get(name)
        if schema is None:
            return None
        return schema.get_rule(field_path)

    def schema_names(self) -> List[str]:
        return sorted(self._schemas.keys())

    def snapshot(self) -> Mapping[str, Schema]:
        """The current read-only name -> Schema mapping."""
        return self._schemas

    def get_age(self) -> Optional[float]:
        """Seconds since the cache was last written, or None if never loaded."""
        if self._loaded_at is None:
            return None
        return time.time() - self._loaded_at

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)
