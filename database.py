"""
JSON file storage for video records.

The whole library lives in one document, {"videos": [...]}. It is read and
validated on every call and rewritten in full after every mutation.
Mutations hold a per-store lock across load, modify and save so concurrent
writers cannot lose each other's changes.
"""

import json
import os
import re
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from pydantic import ValidationError

from log_setup import get_logger
from schemas import Video, VideoCreate, VideoUpdate

logger = get_logger(__name__)

ID_NUMBER = re.compile(r"^v-(\d+)$")


class StoreError(Exception):
    """Raised when the data file cannot be read, parsed or written."""


def next_video_id(videos: Sequence[Video]) -> str:
    """One past the highest numeric id suffix, zero-padded to three digits."""
    highest = 0
    for video in videos:
        match = ID_NUMBER.match(video.id)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"v-{highest + 1:03d}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class VideoStore:
    def __init__(
        self,
        path: Union[str, Path],
        default_duration: float = 300,
        thumbnail_base_url: str = "https://picsum.photos/seed",
    ):
        self.path = Path(path)
        self.default_duration = default_duration
        self.thumbnail_base_url = thumbnail_base_url.rstrip("/")
        self._lock = threading.Lock()

    def load_all(self) -> List[Video]:
        """Read every record from disk. A missing file is an empty library."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("videos_load_failed", path=str(self.path), error=str(e))
            raise StoreError(f"Failed to load videos from {self.path}") from e

        if not isinstance(document, dict) or not isinstance(document.get("videos", []), list):
            logger.error("videos_load_failed", path=str(self.path), error="unexpected document shape")
            raise StoreError(f"Unexpected document shape in {self.path}")

        try:
            return [Video.model_validate(item) for item in document.get("videos", [])]
        except ValidationError as e:
            logger.error("videos_load_failed", path=str(self.path), error=str(e))
            raise StoreError(f"Invalid video record in {self.path}") from e

    def save_all(self, videos: Sequence[Video]) -> None:
        """Overwrite the data file with ``videos`` via a temp file and rename."""
        document = {"videos": [v.model_dump() for v in videos]}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".videos-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, ensure_ascii=False)
                    f.write("\n")
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("videos_save_failed", path=str(self.path), error=str(e))
            raise StoreError("Failed to save videos") from e

    def get(self, video_id: str) -> Optional[Video]:
        return next((v for v in self.load_all() if v.id == video_id), None)

    def create(self, payload: VideoCreate) -> Video:
        with self._lock:
            videos = self.load_all()
            new_id = next_video_id(videos)
            video = Video(
                id=new_id,
                title=payload.title,
                thumbnail_url=f"{self.thumbnail_base_url}/{new_id}/300/200",
                created_at=utc_now_iso(),
                duration=self.default_duration,
                views=0,
                tags=list(payload.tags),
            )
            videos.append(video)
            self.save_all(videos)

        logger.info("video_created", video_id=video.id, title=video.title)
        return video

    def update(self, video_id: str, payload: VideoUpdate) -> Optional[Video]:
        """Merge title/tags onto an existing record; None if it does not exist."""
        with self._lock:
            videos = self.load_all()
            index = next((i for i, v in enumerate(videos) if v.id == video_id), None)
            if index is None:
                return None

            changes = payload.changes()
            updated = videos[index].model_copy(update=changes)
            videos[index] = updated
            self.save_all(videos)

        logger.info("video_updated", video_id=video_id, fields=sorted(changes))
        return updated

    def delete(self, video_id: str) -> bool:
        with self._lock:
            videos = self.load_all()
            remaining = [v for v in videos if v.id != video_id]
            if len(remaining) == len(videos):
                return False
            self.save_all(remaining)

        logger.info("video_deleted", video_id=video_id)
        return True
