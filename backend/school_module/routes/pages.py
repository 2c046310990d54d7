import os

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from ..config import settings

router = APIRouter(tags=["Pages"])

NAMED_PAGES = {
    "chat": "chat.html",
    "admin": "admin.html",
}


def _public_file(relative: str) -> str | None:
    root = os.path.realpath(settings.public_dir)
    path = os.path.realpath(os.path.join(root, relative))
    if path != root and not path.startswith(root + os.sep):
        return None
    return path if os.path.isfile(path) else None


@router.get("/{full_path:path}", include_in_schema=False)
def spa_fallback(full_path: str):
    """Front-end pages; must be registered after every API router."""
    if full_path == "api" or full_path.startswith("api/"):
        return JSONResponse(status_code=404, content={"detail": "Not found"})

    page = NAMED_PAGES.get(full_path.strip("/"))
    if page:
        path = _public_file(page)
        if path:
            return FileResponse(path)

    path = _public_file(full_path) if full_path else None
    if path:
        return FileResponse(path)

    index = _public_file("index.html")
    if index:
        return FileResponse(index)
    return PlainTextResponse("Not found", status_code=404)
