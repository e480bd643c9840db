"""Cluster cache.

JSON file holding two indexes over ``ClusterRecord``:

- ``ClusterByARN``: ARN -> record
- ``ClusterList``: profile -> region -> ordered list of records

The cache is loaded once at the start of a command and saved once at the
end.  A (profile, region) key is only ever present once that region has
been fully enumerated for that profile.

There is no cross-process locking.  ``save()`` writes a temporary file and
renames it over the cache, so readers never see a torn file, but when two
invocations race the later save wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from kubectl_eks.errors import CacheCorruptError
from kubectl_eks.models import ClusterCacheDocument, ClusterRecord

logger = logging.getLogger(__name__)


class ClusterCache:
    """In-memory cluster cache backed by a single JSON file."""

    def __init__(self, cache_path: str | Path) -> None:
        self._path = Path(cache_path)
        self._by_arn: dict[str, ClusterRecord] = {}
        self._by_profile_region: dict[str, dict[str, list[ClusterRecord]]] = {}

    @property
    def path(self) -> Path:
        return self._path

    # --- Lifecycle ---

    def load(self) -> None:
        """Replace the in-memory state with the file contents.

        A missing file starts an empty cache.  A file that exists but cannot
        be parsed raises ``CacheCorruptError``.
        """
        if not self._path.exists():
            logger.debug("No cluster cache at %s, starting empty", self._path)
            self._by_arn = {}
            self._by_profile_region = {}
            return

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            doc = ClusterCacheDocument.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise CacheCorruptError(f"Error loading cache file {self._path}: {e}") from e

        self._by_arn = dict(doc.cluster_by_arn)
        self._by_profile_region = {
            profile: {region: list(records) for region, records in regions.items()}
            for profile, regions in doc.cluster_list.items()
        }

    def save(self) -> None:
        """Serialize the whole in-memory cache and overwrite the file."""
        doc = ClusterCacheDocument(
            cluster_by_arn=self._by_arn,
            cluster_list=self._by_profile_region,
        )
        payload = json.dumps(doc.model_dump(mode="json", by_alias=True), indent=2)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self._path.name + ".", dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # --- Lookups (never populate) ---

    def get_by_arn(self, arn: str) -> ClusterRecord | None:
        return self._by_arn.get(arn)

    def get_by_profile_region(self, profile: str, region: str) -> list[ClusterRecord] | None:
        """Return the enumerated clusters, or ``None`` if never enumerated."""
        records = self._by_profile_region.get(profile, {}).get(region)
        if records is None:
            return None
        return list(records)

    # --- Mutation ---

    def put_arn(self, arn: str, record: ClusterRecord) -> None:
        self._by_arn[arn] = record

    def populate_profile_region(
        self, profile: str, region: str, records: list[ClusterRecord],
    ) -> None:
        """Replace the whole record list for (profile, region)."""
        self._by_profile_region.setdefault(profile, {})[region] = list(records)

