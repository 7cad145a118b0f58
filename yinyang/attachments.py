"""yinyang/attachments.py

Materializes uploaded files into complete ``BinaryAttachment`` values.

Uploads are consumed through an async producer that only ever yields fully
read attachments.  Each upload is read inside a scoped resource that closes
it on every exit path, including read errors, which propagate to the caller
as request-level failures.
"""

from __future__ import annotations

# Standard Library
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Protocol

# Local Modules
from yinyang.errors import UnsupportedAttachment
from yinyang.models import ALLOWED_MIME_TYPES, BinaryAttachment

logger = logging.getLogger(__name__)


class Upload(Protocol):
    """The subset of ``fastapi.UploadFile`` the decoder relies on."""

    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...

    async def close(self) -> None: ...


def check_mime_type(mime_type: str | None) -> str:
    """Return ``mime_type`` if allow-listed, else raise ``UnsupportedAttachment``."""
    if mime_type not in ALLOWED_MIME_TYPES:
        raise UnsupportedAttachment(mime_type)
    return mime_type


@asynccontextmanager
async def _opened(upload: Upload) -> AsyncIterator[Upload]:
    try:
        yield upload
    finally:
        await upload.close()


async def iter_attachments(uploads: Iterable[Upload]) -> AsyncIterator[BinaryAttachment]:
    """Yield one complete attachment per allow-listed upload, in order.

    Uploads with a MIME type outside the allow-list are closed unread and
    skipped.
    """
    for upload in uploads:
        async with _opened(upload):
            try:
                mime_type = check_mime_type(upload.content_type)
            except UnsupportedAttachment as exc:
                logger.warning("Rejected file %r: %s", upload.filename, exc)
                continue
            data = await upload.read()
            logger.info(
                "File processed: %s (%s, %d bytes)",
                upload.filename,
                mime_type,
                len(data),
            )
            yield BinaryAttachment(mime_type=mime_type, data=data, filename=upload.filename or "")


async def collect_attachments(uploads: Iterable[Upload]) -> tuple[BinaryAttachment, ...]:
    """Drain :func:`iter_attachments` into a tuple."""
    attachments = [attachment async for attachment in iter_attachments(uploads)]
    logger.info("All files processed. Total image parts: %d", len(attachments))
    return tuple(attachments)
