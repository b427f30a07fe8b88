"""
Scanboard - workbook scan ingestion and class leaderboards
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time

from scanboard.config import HOST, PORT
from scanboard.database import create_scanboard_indexes
from scanboard.submissions.scan_router import router as scan_router
from scanboard.submissions.leaderboard_router import router as leaderboard_router
from scanboard.system.health_router import router as health_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Scanboard API")


@app.on_event("startup")
async def startup_event():
    await create_scanboard_indexes()
    logger.info("Scanboard started")


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    logger.info("REQUEST  %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    logger.info("RESPONSE %s %s status=%d time=%.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ==================== ROUTER REGISTRATION ====================
app.include_router(scan_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")
app.include_router(health_router)
# ============================================================


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
