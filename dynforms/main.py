# dynforms/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dynforms.core.config import get_settings
from dynforms.forms.errors import ConfigurationError
from dynforms.routes.catalogo import router as catalogo_router
from dynforms.routes.db import router as db_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("dynforms.api")

app = FastAPI(
    title="dynforms",
    version="0.1.0",
    default_response_class=JSONResponse
)


# =========================
# 🔒 FUERZA UTF-8 EN JSON
# =========================
@app.middleware("http")
async def force_utf8_json(request: Request, call_next):
    response = await call_next(request)
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        response.headers["Content-Type"] = "application/json; charset=utf-8"
    return response


# Formularios mal configurados: error del servidor, no del cliente
@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log.error("Configuración de formulario inválida en %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Configuración de formulario inválida"})


# Routers
app.include_router(db_router)
app.include_router(catalogo_router)
