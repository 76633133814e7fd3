import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from yingge.api.deps import AI_MANAGER
from yingge.api.v1 import ai, assets, libraries, processing, search, tags
from yingge.config import get_settings
from yingge.db import SessionLocal, check_db, engine, init_models
from yingge.errors import YinggeError
from yingge.services.library_store import LibraryStore
from yingge.services.semantic import load_ai_provider
from yingge.utils.paths import ensure_dirs

settings = get_settings()
logger = logging.getLogger("yingge")

def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

configure_logging()

app = FastAPI(title=settings.APP_NAME, version="1.0.0")

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",")] if settings.CORS_ALLOW_ORIGINS else ["*"]
app.add_middleware(CORSMiddleware, allow_origins=origins, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

for module in (libraries, assets, tags, search, ai, processing):
    app.include_router(module.router, prefix="/api/v1")

@app.exception_handler(YinggeError)
async def yingge_error_handler(request: Request, exc: YinggeError):
    if exc.status_code >= 500:
        logger.error("[api] %s %s failed: %s (%s)", request.method, request.url.path, exc, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.envelope())

@app.on_event("startup")
async def startup():
    ensure_dirs()
    if engine is not None:
        await init_models(engine)  # dev only; prefer Alembic in prod

    if SessionLocal is not None:
        async with SessionLocal() as session:
            try:
                await load_ai_provider(LibraryStore(session), AI_MANAGER, settings)
            except YinggeError as e:
                logger.warning("[startup] AI provider not loaded: %s", e)

@app.get("/health")
async def health():
    db_ok = await check_db()
    return {"status": "ok", "db": db_ok, "ai": await AI_MANAGER.has_provider()}
