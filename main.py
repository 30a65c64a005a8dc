from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from routes import games_router, players_router
from services.engine import GameEngine

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = await GameEngine.open(config.DB_PATH)
    app.state.engine = engine

    # Celery beat owns the periodic sweep in production; this is for single-process deployments.
    if config.INPROCESS_SWEEP:
        engine.inactivity.start(enforce_nudges=True)
        logger.info("In-process inactivity sweep enabled")
    try:
        yield
    finally:
        await engine.close()
        app.state.engine = None


# --- FastAPI setup ---
app = FastAPI(lifespan=lifespan)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok"}


# --- Register routes ---
app.include_router(games_router, prefix="/games")
app.include_router(players_router, prefix="/games")
