import logging
import os
import shutil
import uuid
from dataclasses import dataclass

from fastapi import UploadFile

from .config import settings

logger = logging.getLogger(__name__)

GENERAL = "general"
SPREADSHEET = "excel"
LESSON = "lessons"

CATEGORIES = (GENERAL, SPREADSHEET, LESSON)


@dataclass(frozen=True)
class StoredFile:
    filename: str
    original_name: str
    size: int
    path: str


def category_dir(category: str) -> str:
    if category not in CATEGORIES:
        raise ValueError(f"Unknown upload category: {category}")
    return os.path.join(settings.upload_dir, category)


def ensure_upload_dirs() -> None:
    for category in CATEGORIES:
        os.makedirs(category_dir(category), exist_ok=True)


def save_upload(file: UploadFile, category: str) -> StoredFile:
    directory = category_dir(category)
    os.makedirs(directory, exist_ok=True)

    original_name = os.path.basename(file.filename or "upload")
    file_ext = os.path.splitext(original_name)[1]
    unique_filename = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(directory, unique_filename)

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    size = os.path.getsize(file_path)
    logger.info(f"Stored upload {original_name!r} as {category}/{unique_filename} ({size} bytes)")
    return StoredFile(filename=unique_filename, original_name=original_name, size=size, path=file_path)


def resolve_stored_file(category: str, filename: str) -> str | None:
    """Absolute path of a stored file, or None when it does not exist."""
    safe_name = os.path.basename(filename)
    if not safe_name or safe_name != filename:
        return None
    path = os.path.join(category_dir(category), safe_name)
    return path if os.path.isfile(path) else None


def discard(path: str) -> None:
    if path and os.path.exists(path):
        os.remove(path)
