"""
Product image uploads.

Acceptance depends only on the declared MIME type. A rejected or missing
file yields None so handlers treat it as "no file provided".
"""

import logging
import os
import secrets
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.requests import Request

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES: FrozenSet[str] = frozenset({"image/png", "image/jpg", "image/jpeg"})
IMAGE_FIELD = "image"


@dataclass(frozen=True)
class UploadedImage:
    original_name: str
    stored_name: str
    path: Path
    content_type: str

    @property
    def url(self) -> str:
        return f"/images/{self.stored_name}"


def storage_name(original_name: str) -> str:
    """`<random 0..1e9>-<basename>`; collisions are unlikely but not checked."""
    return f"{secrets.randbelow(10**9)}-{os.path.basename(original_name)}"


class ImageUploadHandler:
    """Validate and store one image file per request."""

    def __init__(
        self,
        destination: str,
        field_name: str = IMAGE_FIELD,
        allowed_types: FrozenSet[str] = ALLOWED_IMAGE_TYPES,
    ):
        self.destination = Path(destination)
        self.field_name = field_name
        self.allowed_types = allowed_types

    def is_allowed(self, content_type: Optional[str]) -> bool:
        return (content_type or "").lower() in self.allowed_types

    async def accept(self, upload: Optional[UploadFile]) -> Optional[UploadedImage]:
        if upload is None or not upload.filename:
            return None

        if not self.is_allowed(upload.content_type):
            logger.info(
                "Dropped upload with disallowed type",
                extra={"content_type": upload.content_type, "field": self.field_name},
            )
            return None

        stored_name = storage_name(upload.filename)
        path = self.destination / stored_name
        await run_in_threadpool(self._write, upload, path)

        logger.info("Stored uploaded image", extra={"stored_name": stored_name})
        return UploadedImage(
            original_name=upload.filename,
            stored_name=stored_name,
            path=path,
            content_type=upload.content_type,
        )

    def _write(self, upload: UploadFile, path: Path) -> None:
        # Not atomic: a crash mid-copy leaves a partial file behind
        path.parent.mkdir(parents=True, exist_ok=True)
        upload.file.seek(0)
        with open(path, "wb") as out:
            shutil.copyfileobj(upload.file, out)

    def remove(self, image_url: Optional[str]) -> None:
        """Delete a previously stored image given its public URL."""
        if not image_url or not image_url.startswith("/images/"):
            return
        path = self.destination / os.path.basename(image_url)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Image already removed", extra={"image_path": str(path)})


async def get_uploaded_image(request: Request) -> Optional[UploadedImage]:
    """FastAPI dependency: the accepted image from the configured field, if any."""
    handler: ImageUploadHandler = request.app.state.context.uploads
    form = await request.form()
    upload = form.get(handler.field_name)
    if not isinstance(upload, UploadFile):
        upload = None
    return await handler.accept(upload)
