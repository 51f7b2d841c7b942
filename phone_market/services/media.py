from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Literal

from fastapi import UploadFile

from phone_market.core.errors import ExternalDependencyFailure, ValidationError

log = logging.getLogger(__name__)

MediaKind = Literal["photo", "video"]

PUBLIC_PREFIX = "/uploads/"
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class MediaFile:
    path: Path
    filename: str  # original client name, used as the Telegram attachment name
    kind: MediaKind
    size: int

    @property
    def public_url(self) -> str:
        return f"{PUBLIC_PREFIX}{self.path.name}"


def classify(content_type: str | None) -> MediaKind | None:
    ct = (content_type or "").lower()
    if ct.startswith("image/"):
        return "photo"
    if ct.startswith("video/"):
        return "video"
    return None


def _safe_name(original: str | None, kind: MediaKind) -> str:
    suffix = Path(original or "").suffix.lower()
    if not suffix or len(suffix) > 8:
        suffix = ".mp4" if kind == "video" else ".jpg"
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}{suffix}"


async def store_upload(upload: UploadFile, upload_dir: Path) -> MediaFile:
    kind = classify(upload.content_type)
    if kind is None:
        raise ValidationError("Only image and video files can be uploaded")

    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / _safe_name(upload.filename, kind)

    size = 0
    f = await asyncio.to_thread(target.open, "wb")
    try:
        with f:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                await asyncio.to_thread(f.write, chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    return MediaFile(path=target, filename=upload.filename or target.name, kind=kind, size=size)


def cleanup_files(files: Iterable[MediaFile]) -> None:
    for item in files:
        for path in (item.path, _compressed_path(item.path)):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                log.warning("could not remove upload %s", path)


def remove_public_media(urls: Iterable[str], upload_dir: Path) -> None:
    """Unlink stored files behind /uploads/<name> URLs; anything else is ignored."""
    for url in urls:
        if not url or PUBLIC_PREFIX not in url:
            continue
        name = url.rsplit(PUBLIC_PREFIX, 1)[1]
        if not name or ".." in name or "/" in name:
            continue
        path = upload_dir / name
        for candidate in (path, _compressed_path(path)):
            try:
                candidate.unlink(missing_ok=True)
            except OSError:
                log.warning("could not remove media %s", candidate.name)


def _compressed_path(path: Path) -> Path:
    return path.with_name(f"{path.stem}.compressed.mp4")


async def compress_video_if_needed(item: MediaFile, *, max_bytes: int, ffmpeg: str = "ffmpeg") -> MediaFile:
    """
    Re-encode a video that exceeds the Bot API upload limit.

    Output goes to ``<stem>.compressed.mp4`` next to the source; an existing
    output is reused so a retried publish does not transcode twice.
    """
    if item.kind != "video" or item.size <= max_bytes:
        return item

    target = _compressed_path(item.path)
    if not target.exists():
        cmd = [
            ffmpeg, "-y", "-i", str(item.path),
            "-c:v", "libx264", "-preset", "veryfast", "-crf", "28",
            "-c:a", "aac", "-b:a", "96k",
            "-movflags", "+faststart",
            str(target),
        ]
        log.info("compressing video %s (%d bytes)", item.path.name, item.size)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ExternalDependencyFailure(f"Video compression unavailable: {e}") from e

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            target.unlink(missing_ok=True)
            tail = stderr.decode("utf-8", errors="replace")[-500:]
            log.error("ffmpeg failed for %s: %s", item.path.name, tail)
            raise ExternalDependencyFailure("Video compression failed")

    size = target.stat().st_size
    if size > max_bytes:
        raise ExternalDependencyFailure("Video is too large even after compression")

    return replace(item, path=target, filename=f"{Path(item.filename).stem}.mp4", size=size)
