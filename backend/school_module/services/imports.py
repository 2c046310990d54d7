"""Roster import from spreadsheets (xlsx/csv).

Rows are inserted one by one; a row that violates a constraint is skipped and
simply not counted, so a single bad line never aborts the batch.
"""
import logging
import os
import secrets
import time
from typing import Any

import pandas as pd
from fastapi import HTTPException, UploadFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Group, Level, User, UserRole
from ..security import generate_phone_placeholder, generate_registration_number, hash_password
from ..storage import SPREADSHEET, discard, save_upload
from .common import avatar_for

logger = logging.getLogger(__name__)


def _cell(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            return str(int(value))
    elif not isinstance(value, str) and pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def roster_extension_supported(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in {".xlsx", ".csv"}


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def read_roster(path: str) -> list[dict[str, str | None]]:
    """First sheet as a list of rows keyed by lower-cased, trimmed headers.

    Cells are read as text so phone numbers keep their leading zeros.
    """
    if path.lower().endswith(".csv"):
        frame = pd.read_csv(path, dtype=str)
    else:
        frame = pd.read_excel(path, dtype=str)
    frame = frame.dropna(how="all")
    rows = []
    for record in frame.to_dict(orient="records"):
        rows.append({str(key).strip().lower(): _cell(value) for key, value in record.items()})
    return rows


def _insert_row(db: Session, user: User) -> bool:
    db.add(user)
    try:
        db.commit()
        return True
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"Skipping import row {user.username!r}: {exc.orig}")
        return False


def _import_upload(db: Session, upload: UploadFile | None, importer) -> int:
    if upload is None or not upload.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file")
    if not roster_extension_supported(upload.filename):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported spreadsheet format")

    stored = save_upload(upload, SPREADSHEET)
    try:
        try:
            rows = read_roster(stored.path)
        except Exception as exc:
            logger.error(f"Could not read spreadsheet {stored.original_name!r}: {exc}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        return importer(db, rows)
    finally:
        discard(stored.path)


def import_teacher_rows(db: Session, rows: list[dict[str, str | None]]) -> int:
    imported = 0
    for row in rows:
        name = row.get("name")
        if not name:
            continue
        username = row.get("username") or f"t_{int(time.time() * 1000)}_{secrets.randbelow(10000)}"
        phone = row.get("phone") or generate_phone_placeholder()
        teacher = User(
            name=name,
            username=username,
            password_hash=hash_password(phone),
            role=UserRole.TEACHER,
            phone=phone,
            avatar=avatar_for(name),
        )
        if _insert_row(db, teacher):
            imported += 1
    logger.info(f"Teacher import finished: {imported}/{len(rows)} row(s) imported")
    return imported


def resolve_level_and_group(
    level_name: str | None,
    group_name: str | None,
    levels: list[Level],
    groups: list[Group],
) -> tuple[int | None, int | None]:
    level_id = None
    group_id = None

    if level_name:
        level = next((item for item in levels if _norm(item.name) == _norm(level_name)), None)
        if level:
            level_id = level.id

    if group_name:
        matches = [item for item in groups if _norm(item.name) == _norm(group_name)]
        if matches:
            if level_id:
                group = next((item for item in matches if item.level_id == level_id), None)
                if group:
                    group_id = group.id
            else:
                group_id = matches[0].id
                level_id = matches[0].level_id

    return level_id, group_id


def import_student_rows(db: Session, rows: list[dict[str, str | None]]) -> int:
    levels = db.query(Level).all()
    groups = db.query(Group).all()
    imported = 0
    for row in rows:
        name = row.get("name")
        if not name:
            continue
        level_id, group_id = resolve_level_and_group(row.get("level"), row.get("group"), levels, groups)
        registration_number = row.get("registration_number") or generate_registration_number()
        student = User(
            name=name,
            username=row.get("username") or f"s_{registration_number}",
            password_hash=hash_password(registration_number),
            role=UserRole.STUDENT,
            level_id=level_id,
            group_id=group_id,
            registration_number=registration_number,
            avatar=avatar_for(name),
        )
        if _insert_row(db, student):
            imported += 1
    logger.info(f"Student import finished: {imported}/{len(rows)} row(s) imported")
    return imported


def import_teachers(db: Session, upload: UploadFile | None) -> int:
    return _import_upload(db, upload, import_teacher_rows)


def import_students(db: Session, upload: UploadFile | None) -> int:
    return _import_upload(db, upload, import_student_rows)
