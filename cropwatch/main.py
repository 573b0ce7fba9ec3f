import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cropwatch.config import CORS_ORIGINS
from cropwatch.live import get_live_hub
from cropwatch.logging_config import setup_logging
from cropwatch.routes.compare import router as compare_router
from cropwatch.routes.devices import router as devices_router
from cropwatch.routes.live import router as live_router

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="CropWatch", version="0.1.0")
logger.info("FastAPI app created")

app.include_router(devices_router)
app.include_router(compare_router)
app.include_router(live_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.on_event("startup")
async def startup_event():
    logger.info("CropWatch starting up")
    await get_live_hub().start()


@app.on_event("shutdown")
async def shutdown_event():
    get_live_hub().stop()
    logger.info("CropWatch shut down")


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
