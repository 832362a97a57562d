"""
users/uploads.py -- Store uploaded profile pictures on disk.

Files are written to Settings.upload_dir, which api/main.py serves at
/uploads/. Each file is named by the upload time in epoch milliseconds plus
the original extension (e.g. 1700000000000.png); if two uploads land in the
same millisecond the number is bumped until the name is free. Files are
opened exclusively, so a concurrent upload never overwrites another. Only
the extension of the client's filename is kept.

The returned value is the public path stored on the user record.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from core.errors import ValidationFailure

PUBLIC_PREFIX = "/uploads"
ALLOWED_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"})


def _human_size(n: int) -> str:
    for unit, size in (("MB", 1024 * 1024), ("KB", 1024)):
        if n >= size:
            return f"{n // size} {unit}"
    return f"{n} bytes"


def _write_new_file(upload_dir: Path, stamp: int, ext: str, data: bytes) -> Path:
    """Write data to the first free <stamp><ext> name, never overwriting an existing file."""
    while True:
        path = upload_dir / f"{stamp}{ext}"
        try:
            with open(path, "xb") as fh:
                fh.write(data)
        except FileExistsError:
            stamp += 1
            continue
        return path


async def save_profile_picture(upload: Optional[UploadFile], upload_dir: Path, max_bytes: int) -> Optional[str]:
    """Persist an uploaded image and return its public path.

    Returns None when no file was chosen (browsers submit an empty filename).
    Raises ValidationFailure for a disallowed extension or an oversized file.
    """
    if upload is None or not upload.filename:
        return None

    ext = Path(upload.filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
        raise ValidationFailure(f"Profile picture must be one of: {allowed}.")

    raw = await upload.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise ValidationFailure(f"Profile picture must be {_human_size(max_bytes)} or smaller.")

    upload_dir.mkdir(parents=True, exist_ok=True)
    path = _write_new_file(upload_dir, time.time_ns() // 1_000_000, ext, raw)
    return f"{PUBLIC_PREFIX}/{path.name}"
