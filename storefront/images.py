# storefront/images.py
import abc
import hashlib
import logging
import mimetypes
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles
import httpx

from .config import Settings
from .errors import BackendUnavailable, ImageRejected

logger = logging.getLogger(__name__)


@dataclass
class ImageFile:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


def _extension(f: ImageFile) -> str:
    ext = os.path.splitext(f.filename or "")[1].lower()
    if ext:
        return ext
    return mimetypes.guess_extension(f.content_type or "") or ""


def unique_name(f: ImageFile) -> str:
    """``<unix millis>-<random hex><ext>``"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{_extension(f)}"


class ImageStore(abc.ABC):
    """Takes uploaded images and hands back URLs the storefront can fetch.

    All files of a call are checked before any is stored, and a call either
    stores every file or fails as a whole.
    """

    name = "abstract"

    def __init__(self, max_bytes: int = 5 * 1024 * 1024, max_files: int = 10):
        self.max_bytes = max_bytes
        self.max_files = max_files

    def check_count(self, count: int) -> None:
        if not count:
            raise ImageRejected("No se subieron imágenes")
        if count > self.max_files:
            raise ImageRejected(f"Máximo {self.max_files} imágenes por envío")

    def check(self, files: Sequence[ImageFile]) -> None:
        self.check_count(len(files))
        for f in files:
            if not (f.content_type or "").startswith("image/"):
                raise ImageRejected("Solo se permiten imágenes", detail={"file": f.filename, "type": f.content_type})
            if len(f.data) > self.max_bytes:
                raise ImageRejected(
                    f"La imagen supera {self.max_bytes // (1024 * 1024)} MB",
                    detail={"file": f.filename, "size": len(f.data)},
                )

    async def ingest(self, files: Sequence[ImageFile]) -> List[str]:
        self.check(files)
        urls = await self.store(files)
        logger.info("%d image(s) stored via %s", len(urls), self.name)
        return urls

    @abc.abstractmethod
    async def store(self, files: Sequence[ImageFile]) -> List[str]:
        ...

    async def close(self) -> None:
        pass


class LocalImageStore(ImageStore):
    """Writes into a directory the app serves under ``url_prefix``."""

    name = "local"

    def __init__(self, upload_dir: Path, url_prefix: str = "/uploads", **limits):
        super().__init__(**limits)
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    async def store(self, files: Sequence[ImageFile]) -> List[str]:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        try:
            for f in files:
                path = self.upload_dir / unique_name(f)
                async with aiofiles.open(path, "wb") as out:
                    await out.write(f.data)
                written.append(path)
        except OSError as e:
            logger.error(f"Error guardando imagen: {e}", exc_info=True)
            for path in written:
                path.unlink(missing_ok=True)
            raise BackendUnavailable("Error subiendo imágenes", detail=str(e))
        return [f"{self.url_prefix}/{path.name}" for path in written]


class CloudinaryImageStore(ImageStore):
    """Signed uploads to Cloudinary's REST API; returns ``secure_url``."""

    name = "cloudinary"
    API_BASE = "https://api.cloudinary.com/v1_1"

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "",
                 timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None, **limits):
        super().__init__(**limits)
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def sign(self, params: dict) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1((to_sign + self.api_secret).encode("utf-8")).hexdigest()

    async def _upload_one(self, f: ImageFile) -> str:
        public_id = os.path.splitext(unique_name(f))[0]
        params = {"timestamp": str(int(time.time())), "public_id": public_id}
        if self.folder:
            params["folder"] = self.folder
        data = dict(params, api_key=self.api_key, signature=self.sign(params))
        r = await self.client.post(
            f"{self.API_BASE}/{self.cloud_name}/image/upload",
            data=data,
            files={"file": (f.filename or public_id, f.data, f.content_type)},
        )
        r.raise_for_status()
        return r.json()["secure_url"]

    async def store(self, files: Sequence[ImageFile]) -> List[str]:
        urls = []
        try:
            for f in files:
                urls.append(await self._upload_one(f))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Error subiendo a Cloudinary: {e}", exc_info=True)
            raise BackendUnavailable("Error subiendo imágenes", detail=str(e))
        return urls

    async def close(self) -> None:
        await self.client.aclose()


def build_image_store(settings: Settings) -> ImageStore:
    limits = {"max_bytes": settings.max_image_bytes, "max_files": settings.max_upload_files}
    if settings.image_backend == "cloudinary":
        return CloudinaryImageStore(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
            **limits,
        )
    return LocalImageStore(settings.upload_dir, **limits)
