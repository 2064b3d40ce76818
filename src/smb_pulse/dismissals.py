# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Dismissed-insight store for SMB Pulse.

Users can hide an insight; its id is then remembered until an explicit
reset. The set of ids lives in one storage slot as a JSON list of strings.

Persistence is best-effort: a corrupt slot or an unavailable storage reads
as an empty set, and failed writes are logged and ignored. Nothing here
raises on storage problems, whatever the storage backend.

Updates (`add`, `discard`) read the slot before writing it back. When that
read fails the update is skipped, so a transient error (e.g. a locked
database) never overwrites the stored ids with a partial set.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Optional

from .db import Storage

logger = logging.getLogger(__name__)

DISMISSED_KEY = "smb_pulse_insights_dismissed_v1"


def _decode(raw: Optional[str]) -> set[str]:
    """Decode a stored payload; corrupt or non-list data gives an empty set."""
    if not raw:
        return set()

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Ignoring corrupt dismissed insights data: %s", exc)
        return set()

    if not isinstance(parsed, list):
        return set()
    return {item for item in parsed if isinstance(item, str)}


class DismissalStore:
    """
    Set of dismissed insight ids backed by a key-value storage slot.

    The store holds no cache: every call reads the slot again, so several
    store objects over the same storage stay consistent.
    """

    def __init__(self, storage: Storage, key: str = DISMISSED_KEY) -> None:
        self.storage = storage
        self.key = key

    def _read(self) -> set[str]:
        """Read the stored ids, letting storage errors propagate."""
        return _decode(self.storage.get_item(self.key))

    def get(self) -> set[str]:
        """
        Return the dismissed ids.

        Non-list payloads yield an empty set; non-string elements are
        dropped. An unavailable storage also yields an empty set.
        """
        try:
            return self._read()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read dismissed insights: %s", exc)
            return set()

    def add(self, insight_id: str) -> None:
        """Dismiss `insight_id`. Dismissing twice is a no-op."""
        if not isinstance(insight_id, str):
            logger.warning("Ignoring non-string insight id: %r", insight_id)
            return
        try:
            current = self._read()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read dismissed insights, skipping add: %s", exc)
            return
        if insight_id in current:
            return
        current.add(insight_id)
        self._write(current)

    def discard(self, insight_id: str) -> None:
        """Show `insight_id` again if it was dismissed."""
        try:
            current = self._read()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Could not read dismissed insights, skipping restore: %s", exc
            )
            return
        if insight_id not in current:
            return
        current.discard(insight_id)
        self._write(current)

    def replace(self, ids: Iterable[str]) -> None:
        """Overwrite the stored set with a deduplicated copy of `ids`."""
        self._write({item for item in ids if isinstance(item, str)})

    def clear(self) -> None:
        """Forget every dismissal."""
        try:
            self.storage.remove_item(self.key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not clear dismissed insights: %s", exc)

    def _write(self, ids: set[str]) -> None:
        payload = json.dumps(sorted(ids))
        try:
            self.storage.set_item(self.key, payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not save dismissed insights: %s", exc)
