from __future__ import annotations

"""
StreamVault — Metadata extraction
=================================

`FFprobeExtractor.probe(storage_key)` runs

    ffprobe -v error -print_format json -show_format -show_streams <path>

as an asyncio subprocess and maps the first video/audio streams onto a
`MediaProbe`. Every failure mode (missing file, missing binary, non-zero exit,
unparseable output) surfaces as `ExtractionError`; the coordinator turns that
into a FLAGGED artifact.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from fractions import Fraction
from typing import Any, Dict, Optional, Protocol

from app.core.config import settings
from app.core.exceptions import ExtractionError
from app.core.storage import AssetMissing, LocalMediaStorage, StorageKeyError, get_storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaProbe:
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bitrate: Optional[int] = None
    codec: Optional[str] = None
    frame_rate: Optional[float] = None
    audio_codec: Optional[str] = None
    size: Optional[int] = None

    def to_columns(self) -> Dict[str, Any]:
        """Column values for `media_artifacts` (size is not overwritten)."""
        data = asdict(self)
        data.pop("size")
        data["duration_seconds"] = data.pop("duration")
        return data


class MetadataExtractor(Protocol):
    async def probe(self, storage_key: str) -> MediaProbe: ...


# ─────────────────────────────────────────────────────────────
# 🔢 Parsing helpers
# ─────────────────────────────────────────────────────────────
def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    f = _to_float(value)
    return int(f) if f is not None else None


def parse_frame_rate(value: Any) -> Optional[float]:
    """`"30000/1001"` → 29.97; `"0/0"` and garbage → None."""
    if not value:
        return None
    try:
        rate = Fraction(str(value))
    except (ValueError, ZeroDivisionError):
        return None
    if rate <= 0:
        return None
    return round(float(rate), 3)


def parse_ffprobe_output(raw: str) -> MediaProbe:
    """Map ffprobe's JSON document onto a `MediaProbe`."""
    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ExtractionError(f"unparseable ffprobe output: {e.msg}")
    if not isinstance(payload, dict):
        raise ExtractionError("unparseable ffprobe output")

    fmt = payload.get("format") or {}
    streams = payload.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
    if video is None and audio is None and not fmt:
        raise ExtractionError("no media streams found")

    video = video or {}
    return MediaProbe(
        duration=_to_float(fmt.get("duration")) or _to_float(video.get("duration")),
        width=_to_int(video.get("width")),
        height=_to_int(video.get("height")),
        bitrate=_to_int(fmt.get("bit_rate")) or _to_int(video.get("bit_rate")),
        codec=video.get("codec_name"),
        frame_rate=parse_frame_rate(video.get("r_frame_rate")),
        audio_codec=(audio or {}).get("codec_name"),
        size=_to_int(fmt.get("size")),
    )


# ─────────────────────────────────────────────────────────────
# 🎞️ ffprobe-backed extractor
# ─────────────────────────────────────────────────────────────
class FFprobeExtractor:
    def __init__(self, storage: Optional[LocalMediaStorage] = None, binary: Optional[str] = None) -> None:
        self.storage = storage or get_storage()
        self.binary = binary or settings.FFPROBE_BINARY

    async def probe(self, storage_key: str) -> MediaProbe:
        try:
            path = self.storage.path_for(storage_key)
            await self.storage.size(storage_key)
        except (StorageKeyError, AssetMissing):
            raise ExtractionError("stored asset not found")

        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                "-v", "error",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ExtractionError(f"{self.binary} is not installed")

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", "replace").strip().splitlines()
            raise ExtractionError(message[-1] if message else f"ffprobe exited with {proc.returncode}")

        probe = parse_ffprobe_output(stdout.decode("utf-8", "replace"))
        logger.debug("ffprobe ok", extra={"storage_key": storage_key, "codec": probe.codec})
        return probe


__all__ = ["MediaProbe", "MetadataExtractor", "FFprobeExtractor", "parse_ffprobe_output", "parse_frame_rate"]
