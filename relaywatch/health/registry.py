"""Check registry — registered providers plus their identifying metadata.

Checks can be registered programmatically or loaded from a checks.yaml:

    checks:
      - name: API
        type: http
        url: https://api.example.com/health
        tags: [prod, api]
      - name: Database
        type: tcp
        hostname: db.internal
        port: 5432
        tags: [prod]
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from .checks import PROVIDER_TYPES, CheckProvider
from .result import HealthCheckDescriptor

logger = logging.getLogger(__name__)


def matches_tags(check_tags: Iterable[str], tags: Iterable[str] | None) -> bool:
    """True if the check carries every plain tag and none of the ``-tag`` ones."""
    if not tags:
        return True
    present = set(check_tags)
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if tag.startswith("-"):
            if tag[1:] in present:
                return False
        elif tag not in present:
            return False
    return True


class CheckRegistry:
    """Holds (descriptor, provider) pairs in registration order."""

    def __init__(self) -> None:
        self._entries: list[tuple[HealthCheckDescriptor, CheckProvider]] = []
        self._ids = itertools.count(1)

    def register(
        self,
        name: str,
        provider: CheckProvider,
        tags: Iterable[str] = (),
    ) -> HealthCheckDescriptor:
        if not name:
            raise ValueError("Check 'name' is required")
        descriptor = HealthCheckDescriptor(
            name=name, tags=tuple(dict.fromkeys(tags)), service_id=next(self._ids),
        )
        self._entries.append((descriptor, provider))
        logger.debug("Registered check %s (service_id=%d)", name, descriptor.service_id)
        return descriptor

    def load(self, path: Path | str) -> int:
        """Register checks from a YAML file. Returns the number loaded."""
        path = Path(path)
        if not path.exists():
            logger.warning("Checks file not found: %s", path)
            return 0

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            logger.error("Failed to parse %s: %s", path, e)
            return 0

        if not isinstance(raw, dict):
            logger.warning("Expected a mapping with a 'checks' list in %s", path)
            return 0
        entries = raw.get("checks") or []
        if not isinstance(entries, list):
            logger.warning("'checks' in %s is not a list", path)
            return 0

        loaded = 0
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed check entry: %r", entry)
                continue
            try:
                self._register_entry(entry)
                loaded += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed check entry: %s", e)

        logger.info("Loaded %d health checks from %s", loaded, path)
        return loaded

    def _register_entry(self, entry: dict[str, Any]) -> None:
        check_type = entry.get("type", "")
        factory = PROVIDER_TYPES.get(check_type)
        if factory is None:
            raise ValueError(f"Unknown check type: {check_type!r}")
        self.register(entry["name"], factory(entry), tags=entry.get("tags") or ())

    # ── Lookup ───────────────────────────────────────────────────────────

    def get(self, name: str) -> list[tuple[HealthCheckDescriptor, CheckProvider]]:
        """All checks registered under ``name`` (names may repeat)."""
        return [(d, p) for d, p in self._entries if d.name == name]

    def select(
        self, tags: Iterable[str] | None = None,
    ) -> list[tuple[HealthCheckDescriptor, CheckProvider]]:
        tags = list(tags or [])
        return [(d, p) for d, p in self._entries if matches_tags(d.tags, tags)]

    def descriptors(self) -> list[HealthCheckDescriptor]:
        return [d for d, _ in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
