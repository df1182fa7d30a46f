"""
Image upload endpoint for product and couple photos.

Files are stored under ``settings.upload_dir`` with a random name and
served back from ``settings.public_upload_base_url``.
"""

import uuid
from pathlib import Path

from fastapi import APIRouter, File, UploadFile

from enxoval_api.routers.admin._base import Depends, Session, audit_user, get_db, require_admin
from enxoval_api.services.audit import log_change
from shared.config.constants import ALLOWED_IMAGE_TYPES
from shared.config.logging import admin_logger as logger
from shared.config.settings import settings
from shared.utils.admin_schemas import UploadOutput
from shared.utils.exceptions import ValidationError

router = APIRouter(tags=["admin-uploads"])


def store_image(content: bytes, content_type: str | None) -> str:
    """
    Write an image to the upload directory and return its public URL.

    Raises:
        ValidationError: unsupported type, empty file or over the size limit
    """
    extension = ALLOWED_IMAGE_TYPES.get(content_type or "")
    if extension is None:
        raise ValidationError(
            "Formato de imagem não suportado. Use JPEG, PNG, WEBP ou GIF.",
            content_type=content_type,
        )
    if not content:
        raise ValidationError("Arquivo vazio")
    if len(content) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ValidationError(f"Arquivo muito grande (máximo {limit_mb} MB)", size=len(content))

    directory = Path(settings.upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{extension}"
    (directory / filename).write_bytes(content)
    return f"{settings.public_upload_base_url.rstrip('/')}/{filename}"


@router.post("/uploads", response_model=UploadOutput)
async def upload_image(
    file: UploadFile = File(...),
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
) -> UploadOutput:
    # Read one byte past the limit so oversized files are detected without loading them whole
    content = await file.read(settings.max_upload_bytes + 1)
    url = store_image(content, file.content_type)

    log_change(
        db,
        user_ctx=audit_user(user),
        action="upload",
        entity="storage",
        entity_id=None,
        meta={"url": url, "content_type": file.content_type, "size": len(content)},
    )
    logger.info("Image uploaded", url=url, size=len(content))
    return UploadOutput(url=url)
