"""
Proof-of-payment upload service.

Countries send the bank transfer receipt as a photo or a document. The file
is pulled through the Bot API into the upload directory and referenced by
URL from then on; nothing else in the workflow looks inside it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from aiogram import Bot
from aiogram.types import Message

from bot.services.errors import UploadFailed

logger = logging.getLogger(__name__)

# Bot API refuses to serve files above 20 MB
PROOF_MAX_BYTES = 20 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ProofFile:
    file_id: str
    file_name: str
    mime_type: str
    file_size: Optional[int] = None

    @property
    def is_accepted_type(self) -> bool:
        return self.mime_type.startswith("image/") or self.mime_type == "application/pdf"


def proof_file_from_message(message: Message) -> Optional[ProofFile]:
    """Extract the attachment of a photo / document message, if any."""
    if message.document:
        doc = message.document
        return ProofFile(
            file_id=doc.file_id,
            file_name=doc.file_name or "proof",
            mime_type=doc.mime_type or "application/octet-stream",
            file_size=doc.file_size,
        )
    if message.photo:
        # Largest rendition comes last
        photo = message.photo[-1]
        return ProofFile(
            file_id=photo.file_id,
            file_name=f"{photo.file_unique_id}.jpg",
            mime_type="image/jpeg",
            file_size=photo.file_size,
        )
    return None


def build_proof_path(country_key: str, file_name: str, now: datetime) -> str:
    """payment-proofs/<country>/<unix ms>_<sanitised file name>"""
    safe_name = _UNSAFE_CHARS.sub("_", file_name).strip("._") or "proof"
    timestamp = int(now.timestamp() * 1000)
    return f"payment-proofs/{country_key}/{timestamp}_{safe_name}"


class TelegramProofUploader:
    """Downloads a Telegram attachment into `storage_dir` and returns its URL."""

    def __init__(self, bot: Bot, storage_dir: str, base_url: Optional[str] = None) -> None:
        self._bot = bot
        self._storage_dir = Path(storage_dir)
        self._base_url = base_url.rstrip("/") if base_url else None

    async def upload(self, file: ProofFile, path_hint: str) -> str:
        if not file.is_accepted_type:
            raise UploadFailed("Only images and PDF files are accepted")
        if file.file_size and file.file_size > PROOF_MAX_BYTES:
            raise UploadFailed("File is too large (20 MB max)")

        destination = self._storage_dir / path_hint
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            await self._bot.download(file.file_id, destination=destination)
        except Exception as exc:
            logger.warning("Proof upload to %s failed: %s", destination, exc)
            raise UploadFailed("Failed to upload file") from exc

        logger.info("Stored proof of payment at %s", destination)
        if self._base_url:
            return f"{self._base_url}/{path_hint}"
        return destination.resolve().as_uri()
