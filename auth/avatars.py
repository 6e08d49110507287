"""
auth/avatars.py -- Local disk storage for account avatar images.

Files land in one shared upload directory named "<epoch millis>-<name>".
The timestamp prefix keeps uploads from overwriting each other in practice but
is not collision-proof for two uploads of the same name in the same
millisecond.

The stored avatar path is "<upload dir name>/<file>", which is also the URL
path the app serves it under (see the StaticFiles mount in api/main.py).

Layer rule: stdlib only.
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path

logger = logging.getLogger("gameportal.auth")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(original: str | None) -> str:
    """Reduce a client-supplied filename to a safe basename.

    Directory components are dropped and anything outside [A-Za-z0-9._-]
    becomes "_", so the result can never escape the upload directory.
    """
    name = Path((original or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    return name[:100] or "avatar"


class AvatarStorage:
    """Save and delete avatar files under a single directory."""

    def __init__(self, directory: Path | str, max_bytes: int) -> None:
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    @property
    def url_prefix(self) -> str:
        return self.directory.name

    def save(self, original_name: str | None, content: bytes) -> str:
        """Write content and return the relative avatar path to store."""
        filename = f"{int(time.time() * 1000)}-{safe_filename(original_name)}"
        (self.directory / filename).write_bytes(content)
        return f"{self.url_prefix}/{filename}"

    def delete(self, avatar_path: str) -> bool:
        """Remove the file behind a stored avatar path. Returns False if it was already gone."""
        target = self.directory / Path(avatar_path).name
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("Avatar file already missing: %s", target)
            return False
        return True
