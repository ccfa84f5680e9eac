"""On-disk storage for event documents.

Files live flat under ``settings.DOCUMENTS_DIR`` as ``{document_id}{ext}``.
Uploads are spooled into ``incoming/`` first and moved into place once the
document id is known.
"""
import logging
import mimetypes
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from planning_service.config import settings
from planning_service.services.errors import bad_request

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DEFAULT_MEDIA_TYPE = "application/octet-stream"
_SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,10}$")


def documents_dir() -> Path:
    return Path(settings.DOCUMENTS_DIR).resolve()


def incoming_dir() -> Path:
    path = documents_dir() / "incoming"
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_extension(filename: Optional[str]) -> str:
    """Lower-cased extension of ``filename``, or '' when it is not plain alphanumerics."""
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if _SAFE_EXTENSION.match(ext) else ""


def stored_name(document_id: str, original_name: Optional[str]) -> str:
    return f"{document_id}{safe_extension(original_name)}"


def is_pdf(original_name: Optional[str], media_type: Optional[str]) -> bool:
    if "pdf" in (media_type or "").lower():
        return True
    return safe_extension(original_name) == ".pdf"


def spool_upload(stream: BinaryIO) -> Path:
    """Copy an upload stream to a uniquely named file under ``incoming/``."""
    target = incoming_dir() / f"{uuid.uuid4()}.part"
    with open(target, "wb") as fh:
        shutil.copyfileobj(stream, fh)
    return target


def store(source: Path, document_id: str, original_name: Optional[str]) -> Path:
    """Move a spooled file to its final location and return that path."""
    target_dir = documents_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / stored_name(document_id, original_name)
    try:
        os.rename(source, target)
    except OSError:
        # rename fails across filesystems
        logger.debug("Rename of %s failed, copying instead", source)
        try:
            shutil.copyfile(source, target)
        except OSError:
            discard(target)
            raise
        os.unlink(source)
    return target


def discard(path: Path) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove stored document %s", path, exc_info=True)


def resolve_stored_path(document_id: str, original_name: Optional[str]) -> Path:
    """Absolute path of a stored document; rejects anything escaping DOCUMENTS_DIR."""
    base = documents_dir()
    path = (base / stored_name(document_id, original_name)).resolve()
    if base not in path.parents:
        raise bad_request("INVALID_STORAGE_PATH", "Invalid document path")
    return path


def resolve_media_type(stored_type: Optional[str], filename: Optional[str] = None) -> str:
    """Media type to serve a document with.

    ``type`` holds either the literal 'PDF' or the upload's media type.
    """
    if stored_type:
        if stored_type.upper() == "PDF":
            return PDF_MEDIA_TYPE
        if "/" in stored_type:
            return stored_type
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or DEFAULT_MEDIA_TYPE
