# storefront/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import Settings, setup_logging
from .core import ProductIn, CategoryIn, PurchaseRequest, SaveAllRequest
from .database import build_store
from .errors import StoreError
from .images import ImageFile, ImageStore, LocalImageStore, build_image_store
from .logic import (
    list_data_logic, get_product_logic, create_product_logic, update_product_logic,
    delete_product_logic, upsert_category_logic, delete_category_logic,
    save_all_logic, upload_logic, purchase_logic, health_logic
)
from .stores import CatalogStore

logger = logging.getLogger(__name__)

# ---------------------------
# Dependencies
# ---------------------------
def get_store(request: Request) -> CatalogStore:
    return request.app.state.store

def get_images(request: Request) -> ImageStore:
    return request.app.state.images

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(settings: Optional[Settings] = None,
               store: Optional[CatalogStore] = None,
               images: Optional[ImageStore] = None) -> FastAPI:
    """Build the storefront app.

    Backends are chosen here, once: pass ``store``/``images`` to inject
    them, otherwise they are built from ``settings``.
    """
    if settings is None:
        settings = Settings.from_env()
        setup_logging(settings)
    store = store or build_store(settings)
    images = images or build_image_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.connect()
        if isinstance(images, LocalImageStore):
            images.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Storefront ready (%s store, %s images)", store.name, images.name)
        try:
            yield
        finally:
            await images.close()
            await store.close()
            logger.info("Storefront stopped")

    app = FastAPI(title="storefront-api", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.images = images

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------
    # Error envelope
    # ---------------------------
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s (%s)", request.method, request.url.path,
                         exc.status_code, exc.message, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "details": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Datos inválidos", "details": details},
        )

    # ---------------------------
    # Catalog endpoints
    # ---------------------------
    @app.get("/api/data")
    async def get_data(store: CatalogStore = Depends(get_store), settings: Settings = Depends(get_settings)):
        return await list_data_logic(store, settings)

    @app.get("/api/products/{product_id}")
    async def get_product(product_id: int, store: CatalogStore = Depends(get_store),
                          settings: Settings = Depends(get_settings)):
        return await get_product_logic(store, settings, product_id)

    @app.post("/api/products")
    async def create_product(payload: ProductIn, store: CatalogStore = Depends(get_store),
                             settings: Settings = Depends(get_settings)):
        return await create_product_logic(store, settings, payload)

    @app.put("/api/products/{product_id}")
    async def update_product(product_id: int, payload: ProductIn, store: CatalogStore = Depends(get_store),
                             settings: Settings = Depends(get_settings)):
        return await update_product_logic(store, settings, product_id, payload)

    @app.delete("/api/products/{product_id}")
    async def delete_product(product_id: int, store: CatalogStore = Depends(get_store),
                             settings: Settings = Depends(get_settings)):
        return await delete_product_logic(store, settings, product_id)

    # ---------------------------
    # Category endpoints
    # ---------------------------
    @app.post("/api/categories")
    async def upsert_category(payload: CategoryIn, store: CatalogStore = Depends(get_store),
                              settings: Settings = Depends(get_settings)):
        return await upsert_category_logic(store, settings, payload)

    @app.delete("/api/categories/{category_id}")
    async def delete_category(category_id: int, store: CatalogStore = Depends(get_store),
                              settings: Settings = Depends(get_settings)):
        return await delete_category_logic(store, settings, category_id)

    # ---------------------------
    # Batch sync from the admin panel
    # ---------------------------
    @app.post("/api/saveAll")
    async def save_all(payload: SaveAllRequest, store: CatalogStore = Depends(get_store),
                       settings: Settings = Depends(get_settings)):
        return await save_all_logic(store, settings, payload)

    # ---------------------------
    # Uploads
    # ---------------------------
    @app.post("/api/upload")
    async def upload(images: Optional[List[UploadFile]] = File(None),
                     image_store: ImageStore = Depends(get_images)):
        images = images or []
        image_store.check_count(len(images))
        files = []
        for f in images:
            # one byte past the limit is enough to reject the file
            data = await f.read(image_store.max_bytes + 1)
            files.append(ImageFile(filename=f.filename, content_type=f.content_type, data=data))
        return await upload_logic(image_store, files)

    if isinstance(images, LocalImageStore):
        app.mount(images.url_prefix, StaticFiles(directory=images.upload_dir, check_dir=False), name="uploads")

    # ---------------------------
    # Checkout
    # ---------------------------
    @app.post("/api/purchase")
    async def purchase(payload: PurchaseRequest, store: CatalogStore = Depends(get_store),
                       settings: Settings = Depends(get_settings)):
        return await purchase_logic(store, settings, payload)

    @app.get("/api/test")
    async def health(store: CatalogStore = Depends(get_store), settings: Settings = Depends(get_settings),
                     image_store: ImageStore = Depends(get_images)):
        return await health_logic(store, settings, image_store)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront.main:create_app", factory=True, host="0.0.0.0", port=4000)
