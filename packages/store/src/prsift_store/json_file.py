"""JsonFileStore: one JSON review record per pull request.

Records live under a reviews directory scoped to the invoking project
(default `.prsift/reviews`), named `pr-<number>-review.json`. Re-reviewing a
PR overwrites its record.

Writes go to a temporary file in the same directory and are moved into place
with os.replace, so a crash mid-write leaves either the old record or the
new one, never a truncated file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from prsift_store.base import BaseStore
from prsift_store.models import ReviewRecord

logger = logging.getLogger(__name__)

DEFAULT_REVIEWS_DIR = ".prsift/reviews"


class JsonFileStore(BaseStore):
    def __init__(self, reviews_dir: str | Path = DEFAULT_REVIEWS_DIR, root: str | Path | None = None):
        base = Path(root) if root is not None else Path.cwd()
        self._dir = base / reviews_dir

    @property
    def reviews_dir(self) -> Path:
        return self._dir

    def path_for(self, pr_number: int) -> Path:
        return self._dir / f"pr-{pr_number}-review.json"

    def save(self, record: ReviewRecord) -> str:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record.pr)
        payload = json.dumps(record.to_dict(), indent=2) + "\n"

        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Saved review record for PR #%d to %s", record.pr, path)
        return str(path)

    def load(self, pr_number: int) -> ReviewRecord | None:
        path = self.path_for(pr_number)
        if not path.exists():
            return None
        return ReviewRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def list_reviews(self) -> list[ReviewRecord]:
        if not self._dir.is_dir():
            return []
        records = []
        for path in sorted(self._dir.glob("pr-*-review.json")):
            try:
                records.append(ReviewRecord.from_dict(json.loads(path.read_text(encoding="utf-8"))))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Skipping unreadable review record %s: %s", path, e)
        return sorted(records, key=lambda r: r.reviewed_at)
