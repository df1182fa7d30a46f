"""
Enxoval REST API main application.
Entry point for the FastAPI server: ``uvicorn enxoval_api.main:app``.
"""

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from enxoval_api.core.cors import configure_cors
from enxoval_api.core.errors import register_exception_handlers
from enxoval_api.core.lifespan import lifespan
from enxoval_api.core.middlewares import register_middlewares
from enxoval_api.routers.admin import router as admin_router
from enxoval_api.routers.auth import router as auth_router
from enxoval_api.routers.catalog import router as catalog_router
from enxoval_api.routers.checkout import router as checkout_router
from enxoval_api.routers.health import router as health_router
from enxoval_api.routers.payments import router as payments_router
from shared.config.settings import settings
from shared.security.rate_limit import limiter


app = FastAPI(
    title="Enxoval API",
    description="Baby shower gift registry: catalog, Mercado Pago checkout and admin portal",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter

register_exception_handlers(app)

# Registered before CORS so CORS stays the outermost layer
register_middlewares(app)
configure_cors(app)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(checkout_router)
app.include_router(payments_router)
app.include_router(admin_router)

# Uploaded images, when stored locally
if settings.public_upload_base_url.startswith("/"):
    app.mount(
        settings.public_upload_base_url.rstrip("/"),
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )
