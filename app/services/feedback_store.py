"""
Feedback Store: append-only JSON array of feedback records.
============================================================

All submissions live in one JSON array file (default data/feedback.json).
Appends are serialized per file (thread lock + advisory flock on a sibling
.lock file) and written tmp → fsync → os.replace, so a failed write never
damages what was already persisted and readers always see a whole file.

Older record shapes are upgraded on read by upgrade_record(); the file on
disk is never rewritten to the new shape.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from app.config import settings
from app.core.errors import InternalError
from app.models.feedback import answer_text
from app.services.sentiment_service import analyze_sentiment

logger = logging.getLogger(__name__)

# Fields of a flat legacy record that are not answers
LEGACY_RESERVED_FIELDS = ("id", "timestamp", "type", "sentiment", "metadata")

_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


class FeedbackStoreError(InternalError):
    """Persisting a record failed; nothing was written."""


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


# ---------------------------------------------------------------------------
# Legacy upgrade (pure)
# ---------------------------------------------------------------------------

def is_current_record(item: Any) -> bool:
    """True when the record already has ``sections`` and a labelled ``sentiment``."""
    if not isinstance(item, dict):
        return False
    sentiment = item.get("sentiment")
    return (
        isinstance(item.get("sections"), dict)
        and isinstance(sentiment, dict)
        and bool(sentiment.get("label"))
    )


def _fallback_id(item: dict) -> str:
    digest = hashlib.sha1(json.dumps(item, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"legacy_{digest[:12]}"


def upgrade_record(item: dict) -> dict:
    """Return ``item`` in the current record shape without touching the input.

    Two older shapes exist:

    * sectioned records without sentiment (written by the PHP backend):
      sections and metadata are kept, sentiment is computed from the
      section texts;
    * flat records where every field outside LEGACY_RESERVED_FIELDS is one
      answer: each non-blank string field becomes a text section.

    Missing ids get a stable content hash so repeated reads agree; a
    missing timestamp stays empty rather than pretending to be "now".
    """
    if is_current_record(item):
        return item

    if "sections" in item:
        upgraded = dict(item)
        # PHP encodes an empty answer map as []
        if not isinstance(item["sections"], dict):
            upgraded["sections"] = {}
        texts = [answer_text(answer) for answer in upgraded["sections"].values()]
    else:
        sections = {}
        for key, value in item.items():
            if key in LEGACY_RESERVED_FIELDS or not isinstance(value, str) or not value.strip():
                continue
            sections[key] = {"id": key, "text": value.strip()}
        upgraded = {"sections": sections, "type": "text"}
        texts = [section["text"] for section in sections.values()]

    upgraded["id"] = item.get("id") or _fallback_id(item)
    upgraded["timestamp"] = item.get("timestamp") or ""
    upgraded.setdefault("type", "text")
    upgraded["sentiment"] = analyze_sentiment(" ".join(t for t in texts if t)).to_dict()
    return upgraded


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class FeedbackStore:
    """Durable, ordered list of feedback records backed by one JSON file."""

    def __init__(self, path: Optional[str | Path] = None):
        self._path = Path(path) if path else settings.feedback_path

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def ensure_storage(self) -> None:
        """Create the data directory and an empty array file if absent."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._exclusive():
            if not self._path.exists():
                self._write([])
                logger.info("feedback_store_created", extra={"path": str(self._path)})

    def load_all(self) -> List[dict]:
        """Every record in arrival order, upgraded to the current shape.

        A missing file is an empty store. Malformed content is logged and
        treated as empty so read paths stay available.
        """
        records = []
        for index, item in enumerate(self._read_raw()):
            if not isinstance(item, dict):
                logger.warning("feedback_store_item_skipped", extra={"index": index, "kind": type(item).__name__})
                continue
            records.append(upgrade_record(item))
        return records

    def count(self) -> int:
        return sum(1 for item in self._read_raw() if isinstance(item, dict))

    def append(self, record: dict) -> None:
        """Add ``record`` to the end of the store.

        Raises FeedbackStoreError if the file cannot be written; the
        previous contents are left intact in that case.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._exclusive():
                existing = self._read_for_append()
                existing.append(record)
                self._write(existing)
        except FeedbackStoreError:
            raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("feedback_store_append_failed", extra={"path": str(self._path), "error": str(e)})
            raise FeedbackStoreError(
                detail=f"Failed to persist feedback {record.get('id', '?')}: {e}",
                context={"path": str(self._path)},
            ) from e

        logger.info("feedback_record_appended", extra={"feedback_id": record.get("id"), "total": len(existing)})

    # -- internals ---------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Serialize writers in this process and across worker processes."""
        with _lock_for(self._path):
            with open(self.lock_path, "a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read_raw(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("feedback_store_unreadable", extra={"path": str(self._path), "error": str(e)})
            return []
        if not isinstance(data, list):
            logger.warning("feedback_store_not_array", extra={"path": str(self._path), "kind": type(data).__name__})
            return []
        return data

    def _read_for_append(self) -> list:
        if not self._path.exists():
            return []
        try:
            raw = self._path.read_text(encoding="utf-8")
            if not raw.strip():
                return []
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._quarantine(f"unreadable content: {e}")
            return []
        if not isinstance(data, list):
            self._quarantine(f"top level is {type(data).__name__}, expected array")
            return []
        return data

    def _quarantine(self, reason: str) -> None:
        """Move an unreadable file aside so appends can continue without losing it."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        os.replace(self._path, target)
        logger.error(
            "feedback_store_corrupt",
            extra={"path": str(self._path), "moved_to": str(target), "reason": reason},
        )

    def _write(self, records: list) -> None:
        """Atomic write: tmp → fsync → replace."""
        mode = stat.S_IMODE(self._path.stat().st_mode) if self._path.exists() else 0o644
        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), prefix=".feedback-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


# ---------------------------------------------------------------------------
# Module-level singleton + FastAPI dependency
# ---------------------------------------------------------------------------
_store: Optional[FeedbackStore] = None


def get_feedback_store() -> FeedbackStore:
    global _store
    if _store is None:
        _store = FeedbackStore()
    return _store
