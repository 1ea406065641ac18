from __future__ import annotations  # FastAPI server exposing the interview session core

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from services.runtime import get_runtime, reset_runtime


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):  # Adopt persisted pool state and run the cache sweeper
    runtime = get_runtime()
    metrics = runtime.pool.restore()
    runtime.cache.start_sweeper()
    logger.info("session core ready total=%d active=%d", metrics.total, metrics.active)
    try:
        yield
    finally:
        reset_runtime()


app = FastAPI(title="Interview Session Core API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)
app.include_router(router)


@app.get("/health")
def health() -> dict:  # Liveness check
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
