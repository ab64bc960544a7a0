"""Image storage backends for receipt uploads."""
import hashlib
import logging
import time
from pathlib import Path
from typing import Optional
from uuid import uuid4

import requests
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .config import Settings
from .errors import ConfigError, StorageError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


def allowed_image(filename: str) -> bool:
    if not filename or "." not in filename:
        return False
    return filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


class ImageStorage:
    name = "base"

    def save(self, upload: FileStorage, base_url: str = "") -> str:
        """Store ``upload`` and return the URL it can be fetched from.

        ``base_url`` is the origin the app is reached at; backends that serve
        files themselves use it when no public base URL is configured.
        """
        raise NotImplementedError


class LocalImageStorage(ImageStorage):
    """Writes uploads to a directory served by the app under ``/uploads``."""

    name = "local"

    def __init__(self, uploads_dir: Path, public_base_url: str = ""):
        self.uploads_dir = Path(uploads_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def save(self, upload: FileStorage, base_url: str = "") -> str:
        safe = secure_filename(upload.filename or "") or "image"
        stored = f"{uuid4().hex}_{safe}"
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
            upload.save(self.uploads_dir / stored)
        except OSError as exc:
            raise StorageError(f"Could not write {stored}: {exc}") from exc
        logger.info(f"Stored upload {upload.filename!r} as {stored}")
        base = self.public_base_url or base_url.rstrip("/")
        return f"{base}/uploads/{stored}"


class CloudinaryImageStorage(ImageStorage):
    """Signed uploads through Cloudinary's REST API."""

    name = "cloudinary"

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.cloud_name = settings.cloudinary_cloud_name
        self.api_key = settings.cloudinary_api_key
        self.api_secret = settings.cloudinary_api_secret
        self.folder = settings.cloudinary_folder
        self.timeout = settings.storage_timeout_seconds
        self.session = session or requests.Session()

    def sign(self, params: dict) -> str:
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
        return hashlib.sha1((to_sign + self.api_secret).encode("utf-8")).hexdigest()

    def save(self, upload: FileStorage, base_url: str = "") -> str:
        params = {"folder": self.folder, "timestamp": int(time.time())}
        data = {**params, "api_key": self.api_key, "signature": self.sign(params)}
        files = {"file": (upload.filename, upload.stream, upload.mimetype or "application/octet-stream")}
        url = CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name)
        try:
            response = self.session.post(url, data=data, files=files, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise StorageError(f"Cloudinary upload failed: {exc}") from exc
        except ValueError as exc:
            raise StorageError("Cloudinary returned an invalid response") from exc

        image_url = payload.get("secure_url") or payload.get("url")
        if not image_url:
            raise StorageError("Cloudinary response did not include a URL")
        logger.info(f"Uploaded {upload.filename!r} to Cloudinary")
        return image_url


def build_storage(settings: Settings) -> ImageStorage:
    if settings.storage_backend == "cloudinary":
        if not settings.has_cloudinary:
            raise ConfigError("Cloudinary storage selected but credentials are missing")
        return CloudinaryImageStorage(settings)
    return LocalImageStorage(settings.uploads_dir, settings.public_base_url)
