"""External collaborators injected into the workflow engine.

Three seams, each a small strategy interface with a log-only default:

  - PhotoStore      — opaque blob storage, returns a stored path
  - EmailSender     — email rendering/delivery (templates live elsewhere)
  - InventorySync   — third-party inventory system, fire-and-forget

The engine and the notification dispatcher take instances of these at
construction time; tests pass fakes.  Failures of EmailSender and
InventorySync are logged and swallowed by their callers.
"""

from __future__ import annotations

import logging
import os
import uuid
from abc import ABC, abstractmethod

from fieldops.core.exceptions import InvalidPayload

logger = logging.getLogger(__name__)

ALLOWED_PHOTO_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "heic"})


# ── Interfaces ───────────────────────────────────────────────────────────────


class PhotoStore(ABC):
    """Stores an uploaded photo and returns its relative path."""

    @abstractmethod
    def upload_photo(self, data: bytes, filename: str) -> str:
        ...


class EmailSender(ABC):
    @abstractmethod
    def send_email(self, template: str, recipient: str, data: dict) -> None:
        ...


class InventorySync(ABC):
    @abstractmethod
    def sync(self, family: str, item_id: str) -> None:
        ...


# ── Defaults ─────────────────────────────────────────────────────────────────


class LocalPhotoStore(PhotoStore):
    """Writes photos to ``<upload_folder>/photos/<uuid>.<ext>``."""

    def __init__(self, upload_folder: str):
        self.upload_folder = upload_folder

    def upload_photo(self, data: bytes, filename: str) -> str:
        ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
        if ext not in ALLOWED_PHOTO_EXTENSIONS:
            raise InvalidPayload(
                "Unsupported photo type",
                details={"file": f"extension must be one of {sorted(ALLOWED_PHOTO_EXTENSIONS)}"},
            )
        if not data:
            raise InvalidPayload("Empty photo upload", details={"file": "empty"})

        rel_path = f"photos/{uuid.uuid4()}.{ext}"
        abs_path = os.path.join(self.upload_folder, rel_path)
        os.makedirs(os.path.dirname(abs_path), exist_ok=True)
        with open(abs_path, "wb") as fh:
            fh.write(data)
        logger.info("Photo stored: %s (%d bytes)", rel_path, len(data))
        return rel_path


class LoggingEmailSender(EmailSender):
    """Logs the email that would be sent.  Delivery is out of scope."""

    def send_email(self, template: str, recipient: str, data: dict) -> None:
        logger.info("Email [%s] → %s", template, recipient,
                    extra={"family": data.get("family"), "item_id": data.get("item_id")})


class NoOpInventorySync(InventorySync):
    """Records the intent to sync; no external system is contacted."""

    def sync(self, family: str, item_id: str) -> None:
        logger.info("Inventory sync requested", extra={"family": family, "item_id": item_id})
