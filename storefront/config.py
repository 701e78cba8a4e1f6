# storefront/config.py
import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

BASE_DIR = Path(__file__).resolve().parent.parent

STORE_BACKENDS = ("json", "sqlite", "postgres")
IMAGE_BACKENDS = ("local", "cloudinary")


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Configuration settings for the storefront.

    Built once at startup and handed to ``create_app``; nothing below the
    app factory reads the environment.
    """

    # Persistence
    store_backend: str = "json"
    data_file: Path = BASE_DIR / "data" / "store.json"
    sqlite_path: Path = BASE_DIR / "data" / "tienda.db"
    database_url: Optional[str] = None
    database_ssl: Optional[bool] = None
    seed_default_categories: bool = True
    backend_timeout: float = 10.0

    # Images
    image_backend: str = "local"
    upload_dir: Path = BASE_DIR / "uploads"
    max_image_bytes: int = 5 * 1024 * 1024
    max_upload_files: int = 10
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = "tienda"

    # Checkout
    whatsapp_number: str = "929528308"
    whatsapp_message: str = "Hola! Estoy interesado en {PRODUCT_NAME}, precio S/. {PRICE}"
    currency: str = "S/."

    # Other settings
    environment: str = "development"
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        values = {
            "store_backend": os.getenv("STORE_BACKEND", "json").lower(),
            "database_url": os.getenv("DATABASE_URL") or None,
            "seed_default_categories": _env_bool("SEED_DEFAULT_CATEGORIES", True),
            "backend_timeout": float(os.getenv("BACKEND_TIMEOUT", "10")),
            "image_backend": os.getenv("IMAGE_BACKEND", "local").lower(),
            "max_image_bytes": int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024))),
            "max_upload_files": int(os.getenv("MAX_UPLOAD_FILES", "10")),
            "cloudinary_cloud_name": os.getenv("CLOUDINARY_CLOUD_NAME") or None,
            "cloudinary_api_key": os.getenv("CLOUDINARY_API_KEY") or None,
            "cloudinary_api_secret": os.getenv("CLOUDINARY_API_SECRET") or None,
            "cloudinary_folder": os.getenv("CLOUDINARY_FOLDER", "tienda"),
            "environment": os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "development")),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        # Only override path/text defaults that are actually set
        for key, env in (
            ("data_file", "DATA_FILE"),
            ("sqlite_path", "SQLITE_PATH"),
            ("upload_dir", "UPLOAD_DIR"),
            ("log_file", "LOG_FILE"),
            ("whatsapp_number", "WHATSAPP_NUMBER"),
            ("whatsapp_message", "WHATSAPP_MESSAGE"),
            ("currency", "CURRENCY"),
        ):
            if os.getenv(env):
                values[key] = os.getenv(env)
        if os.getenv("DATABASE_SSL"):
            values["database_ssl"] = _env_bool("DATABASE_SSL", False)

        settings = cls(**values)
        settings.check()
        return settings

    def check(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(f"Unknown STORE_BACKEND {self.store_backend!r}")
        if self.image_backend not in IMAGE_BACKENDS:
            raise ValueError(f"Unknown IMAGE_BACKEND {self.image_backend!r}")
        if self.store_backend == "postgres" and not self.database_url:
            raise ValueError("No DATABASE_URL set in environment")
        if self.image_backend == "cloudinary" and not (
            self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret
        ):
            raise ValueError("Cloudinary credentials are not set in environment")

    def postgres_ssl(self) -> bool:
        if self.database_ssl is not None:
            return self.database_ssl
        url = self.database_url or ""
        # Hosted providers (Railway, Neon, Supabase) only accept TLS
        return any(host in url for host in ("railway", "neon.tech", "supabase"))


def setup_logging(settings: Settings):
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        handlers=handlers,
    )
