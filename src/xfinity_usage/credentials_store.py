from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional, Union


logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Small JSON key/value file used by the CLI's `--save` flag.

    Values are stored in PLAIN TEXT. The extraction core never reads this file; the CLI resolves
    credentials and passes them in explicitly.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(os.path.expanduser(str(path)))

    def load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = None
        if not isinstance(data, dict):
            # Self-heal: move the unreadable file aside and start empty.
            logger.warning("Credential store is not valid JSON; ignoring it: %s", self.path)
            self._quarantine()
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def get(self, key: str) -> Optional[str]:
        value = self.load().get(key)
        return value or None

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def update(self, values: Mapping[str, str]) -> None:
        data = self.load()
        data.update({k: v for k, v in values.items()})
        self._write(data)

    def clear(self) -> None:
        if self.path.exists():
            self._write({})

    def _write(self, data: Mapping[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(dict(data), indent=2, sort_keys=True), encoding="utf-8")
        try:
            os.chmod(tmp, 0o600)
        except OSError:
            logger.debug("Failed to restrict permissions on %s", tmp, exc_info=True)
        tmp.replace(self.path)

    def _quarantine(self) -> None:
        try:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            self.path.replace(self.path.with_name(f"{self.path.name}.corrupt-{stamp}"))
        except OSError:
            logger.debug("Failed to quarantine file=%s", self.path, exc_info=True)
