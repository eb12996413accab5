"""Redaction helpers for structured logging."""

from __future__ import annotations

import hashlib
from typing import Any, Dict, Iterable, Mapping, Optional

REDACTED = "[REDACTED]"


def scrub_identifier(value: Optional[str]) -> Optional[str]:
    """Return a short stable hash for identifiers that must not be logged raw."""

    if not value:
        return None

    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


class Redactor:
    """Replace values of denylisted keys, recursing into nested mappings."""

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys = frozenset(key.lower() for key in keys)

    def _is_sensitive(self, key: Any) -> bool:
        return isinstance(key, str) and key.lower() in self._keys

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: (REDACTED if self._is_sensitive(k) else self._scrub(v))
                for k, v in value.items()
            }
        return value

    def apply(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a sanitized copy of ``record``."""

        return self._scrub(record)
