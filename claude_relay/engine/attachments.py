"""Temporary files for image attachments.

Clients send images as ``data:<mime>;base64,<payload>`` URIs. The
assistant CLI only understands file paths, so each image is decoded
into a per-request directory under the working directory and the
prompt is extended with a note listing the paths. Everything here is
best-effort: a bad attachment is skipped, a failed staging step falls
back to "no attachments", and cleanup never raises.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .models import ImageAttachment

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)
DEFAULT_ATTACHMENT_SUBDIR = os.path.join(".tmp", "images")


@dataclass
class StagedAttachments:
    """Result of staging: the prompt to send plus what must be cleaned up."""
    prompt: str
    paths: list[str] = field(default_factory=list)
    temp_dir: str | None = None


def _make_dir_token() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def _decode_data_uri(data: str) -> tuple[str, bytes] | None:
    """Split a data URI into (mime_type, payload bytes), or None if malformed."""
    match = _DATA_URI_RE.match(data or "")
    if not match:
        return None
    mime_type, payload = match.groups()
    try:
        return mime_type, base64.b64decode(payload)
    except (binascii.Error, ValueError):
        return None


def _image_note(paths: list[str]) -> str:
    listing = "\n".join(f"{i}. {p}" for i, p in enumerate(paths, start=1))
    return f"\n\n[Images provided at the following paths:]\n{listing}"


def stage_attachments(
    prompt: str,
    images: Iterable[ImageAttachment] | None,
    cwd: str | None = None,
    *,
    subdir: str = DEFAULT_ATTACHMENT_SUBDIR,
) -> StagedAttachments:
    """Write decoded images to a fresh directory and annotate the prompt.

    Returns the original prompt with no paths when there is nothing to
    stage or when staging fails unexpectedly.
    """
    images = list(images or [])
    if not images:
        return StagedAttachments(prompt=prompt)

    paths: list[str] = []
    temp_dir: Path | None = None
    try:
        base = Path(cwd or os.getcwd())
        temp_dir = base / subdir / _make_dir_token()
        temp_dir.mkdir(parents=True, exist_ok=True)

        for index, image in enumerate(images):
            decoded = _decode_data_uri(image.data)
            if decoded is None:
                logger.warning(
                    "Skipping attachment %d: invalid image data format", index,
                )
                continue
            mime_type, payload = decoded
            extension = mime_type.split("/")[1] if "/" in mime_type else ""
            filepath = temp_dir / f"image_{index}.{extension or 'png'}"
            filepath.write_bytes(payload)
            paths.append(str(filepath))

        final_prompt = prompt
        if paths and prompt and prompt.strip():
            final_prompt = prompt + _image_note(paths)

        logger.info(
            "Staged %d image attachment(s) in %s", len(paths), temp_dir,
        )
        return StagedAttachments(
            prompt=final_prompt, paths=paths, temp_dir=str(temp_dir),
        )
    except Exception:
        logger.exception("Error staging image attachments")
        cleanup_temp_files(paths, str(temp_dir) if temp_dir else None)
        return StagedAttachments(prompt=prompt)


def cleanup_temp_files(
    paths: Iterable[str] | None,
    temp_dir: str | None = None,
) -> None:
    """Remove staged files and their directory. Safe to call repeatedly."""
    removed = 0
    for path in paths or []:
        try:
            os.unlink(path)
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.debug("Could not remove temp file %s: %s", path, exc)
    if temp_dir:
        shutil.rmtree(temp_dir, ignore_errors=True)
    if removed:
        logger.info("Cleaned up %d temp image file(s)", removed)
