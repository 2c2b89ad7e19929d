import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Optional


class PreviewError(RuntimeError):
    """Raised when a preview is released twice or was never created here."""


class PreviewStore:
    """
    Local, revocable preview copies of selected files.

    create() returns a preview reference (a file path the UI can display);
    revoke() deletes it. Every reference must be revoked exactly once.
    """

    def __init__(self, root: Optional[str] = None):
        self._owns_root = root is None
        self.root = Path(root) if root else Path(tempfile.mkdtemp(prefix="yardscape-preview-"))
        self.root.mkdir(parents=True, exist_ok=True)
        self._live: set[str] = set()
        self.created = 0
        self.revoked = 0

    def create(self, source: str | Path) -> str:
        source = Path(source)
        target = self.root / f"{uuid.uuid4().hex}{source.suffix.lower()}"
        shutil.copyfile(source, target)
        reference = str(target)
        self._live.add(reference)
        self.created += 1
        return reference

    def revoke(self, reference: str) -> None:
        if reference not in self._live:
            raise PreviewError(f"Preview already released or unknown: {reference}")
        self._live.remove(reference)
        Path(reference).unlink(missing_ok=True)
        self.revoked += 1
        logging.debug(f"🧹 Preview released: {reference}")

    def is_live(self, reference: str) -> bool:
        return reference in self._live

    @property
    def live_count(self) -> int:
        return len(self._live)

    def close(self) -> None:
        """Release whatever is still live and remove the scratch directory if we made it."""
        for reference in list(self._live):
            self.revoke(reference)
        if self._owns_root:
            shutil.rmtree(self.root, ignore_errors=True)
