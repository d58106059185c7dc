# src/app/main.py
from __future__ import annotations
import asyncio
import logging
import sys
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.app.config import settings
from src.app.constants import RATE_LIMIT_SWEEP_INTERVAL_SECONDS
from src.app.deps import get_rate_limiter
from src.app.domain.errors import RecipeImportError
from src.app.routers.account import router as account_router
from src.app.routers.categories import router as categories_router
from src.app.routers.imports import router as imports_router
from src.app.routers.recipes import router as recipes_router

# Logging simples no stdout (bom para dev e containers)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
log = logging.getLogger("app")

app = FastAPI(title="Recipe Import API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# /recipes/import/* before /recipes/{recipe_id}
app.include_router(imports_router)
app.include_router(recipes_router)
app.include_router(categories_router)
app.include_router(account_router)


@app.exception_handler(RecipeImportError)
async def recipe_import_error_handler(request: Request, exc: RecipeImportError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.fail path=%s type=%s message=%s", request.url.path, exc.kind, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


_sweeper: Optional[asyncio.Task] = None


async def _sweep_rate_limits(interval: float) -> None:
    limiter = get_rate_limiter()
    while True:
        await asyncio.sleep(interval)
        limiter.cleanup_expired()


@app.on_event("startup")
async def startup() -> None:
    global _sweeper
    _sweeper = asyncio.create_task(_sweep_rate_limits(RATE_LIMIT_SWEEP_INTERVAL_SECONDS))


@app.on_event("shutdown")
async def shutdown() -> None:
    global _sweeper
    if _sweeper is not None:
        _sweeper.cancel()
        try:
            await _sweeper
        except asyncio.CancelledError:
            pass
        _sweeper = None


@app.get("/health")
def health():
    return {"ok": True}
