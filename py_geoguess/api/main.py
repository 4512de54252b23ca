"""FastAPI main application."""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
import asyncio
import httpx
import structlog

from ..config import settings
from ..db.connection import db
from ..db.store import RoundStore
from ..clients.routes import fetch_route
from ..clients.shapes import ShapeCatalog, ShapeFetcher
from ..clients.streetview import StreetViewLookup
from ..core.errors import GenerationCancelled, GenerationFailed, LocatorError
from ..core.panorama import PanoramaLocator
from ..core.regions import ShapeCache
from ..core.round_generator import GenerationState, RoundGenerator
from ..core.geodesy import score
from ..core.types import Coordinate
from ..utils.logging import configure_logging
from ..utils.random import make_rng

configure_logging()

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="GeoGuess Round Generator API",
    description="Generates verified street-level game rounds",
    version="0.1.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Process-wide collaborators, wired up on startup
http_client: Optional[httpx.AsyncClient] = None
shape_cache = ShapeCache()
shape_catalog = ShapeCatalog()
round_store = RoundStore(db)
locator: Optional[PanoramaLocator] = None
shape_fetcher: Optional[ShapeFetcher] = None

# Latest generation session per room, and the task logging its outcome
sessions: Dict[str, RoundGenerator] = {}
watchers: Dict[str, asyncio.Task] = {}


# Request/Response models
class CoordinateModel(BaseModel):
    """A WGS84 position."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class GenerationRequest(BaseModel):
    """Request to generate the rounds of a game."""

    shape_names: List[str] = Field(default_factory=list, description="Regions to sample from")
    route_url: Optional[str] = Field(None, description="KML route to take points from instead of shapes")
    round_count: Optional[int] = Field(None, ge=1, le=50, description="Number of rounds, defaults to settings")
    seed: Optional[int] = Field(None, description="Random seed for reproducible sampling")


class SessionResponse(BaseModel):
    """State of a room's generation session."""

    room_id: str
    state: str
    round_count: int
    error_message: Optional[str] = None


class RoundModel(BaseModel):
    index: int
    map_position: CoordinateModel


class ScoreRequest(BaseModel):
    distances_km: Dict[str, float] = Field(..., description="Guess distance per player")


class JumpRequest(BaseModel):
    origin: CoordinateModel
    distance_km: float = Field(..., gt=0)
    bearing_deg: float


class JumpResponse(BaseModel):
    destination: CoordinateModel
    distance_km: float


def _session_response(room_id: str, session: RoundGenerator) -> SessionResponse:
    error_message = None
    if session.state == GenerationState.FAILED and session.error is not None:
        error_message = str(session.error)
    return SessionResponse(
        room_id=room_id,
        state=session.state.value,
        round_count=session.round_count,
        error_message=error_message,
    )


def _get_session(room_id: str) -> RoundGenerator:
    session = sessions.get(room_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No generation for this room")
    return session


async def _watch(room_id: str, session: RoundGenerator) -> None:
    """Log the outcome of a session so its task exception is always retrieved."""
    try:
        await session.wait_to_finish()
        logger.info("Generation completed", room_id=room_id)
    except GenerationCancelled:
        logger.info("Generation cancelled", room_id=room_id)
    except GenerationFailed as e:
        logger.warning("Generation failed", room_id=room_id, error=str(e))
    except Exception as e:
        logger.error("Generation crashed", room_id=room_id, error=str(e))
    finally:
        if watchers.get(room_id) is asyncio.current_task():
            watchers.pop(room_id, None)


# Event handlers
@app.on_event("startup")
async def startup_event():
    """Initialize database and HTTP collaborators on startup."""
    global http_client, locator, shape_fetcher
    logger.info("Starting GeoGuess Round Generator API")
    db.initialize()

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    locator = PanoramaLocator(StreetViewLookup(client=http_client))
    shape_fetcher = ShapeFetcher(client=http_client)
    try:
        await shape_catalog.load(http_client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Shape catalog unavailable", error=str(e))
    logger.info("API startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down GeoGuess Round Generator API")
    for session in sessions.values():
        session.cancel()
    await asyncio.gather(*watchers.values(), return_exceptions=True)
    if http_client is not None:
        await http_client.aclose()


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "GeoGuess Round Generator API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        db.ping()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        raise HTTPException(status_code=503, detail="Service unhealthy")


@app.post("/rooms/{room_id}/generate", response_model=SessionResponse)
async def generate_rounds(room_id: str, request: GenerationRequest):
    """
    Start generating the rounds of a room.

    Returns immediately. Use /rooms/{room_id}/status to follow the session.
    """
    logger.info("Round generation requested", room_id=room_id, request=request.model_dump())

    current = sessions.get(room_id)
    if current is not None and current.state == GenerationState.GENERATING:
        raise HTTPException(status_code=409, detail="Generation already running for this room")

    session = RoundGenerator(
        room_path=room_id,
        locator=locator,
        store=round_store,
        get_shape_from_cache=shape_cache.get,
        put_shape_in_cache=shape_cache.put,
        get_shape_opts=shape_catalog.get_shape_opts,
        fetch_shape=shape_fetcher.fetch_shape,
        fetch_route=lambda url: fetch_route(url, client=http_client),
        round_count=request.round_count,
        rng=make_rng(request.seed),
    )
    sessions[room_id] = session
    session.start_generation(request.shape_names, request.route_url)

    watchers[room_id] = asyncio.ensure_future(_watch(room_id, session))
    return _session_response(room_id, session)


@app.post("/rooms/{room_id}/cancel", response_model=SessionResponse)
async def cancel_generation(room_id: str):
    """Cancel a running generation; finished sessions are left as they are."""
    session = _get_session(room_id)
    session.cancel()
    return _session_response(room_id, session)


@app.get("/rooms/{room_id}/status", response_model=SessionResponse)
async def get_generation_status(room_id: str):
    """Get the state of a room's generation session."""
    return _session_response(room_id, _get_session(room_id))


@app.get("/rooms/{room_id}/rounds", response_model=List[RoundModel])
async def get_rounds(room_id: str):
    """Get the rounds stored for a room."""
    rounds = await round_store.read_rounds(room_id)
    if not rounds:
        raise HTTPException(status_code=404, detail="No rounds stored for this room")
    return [
        RoundModel(index=r.index, map_position=CoordinateModel(**r.map_position.to_dict()))
        for _, r in sorted(rounds.items())
    ]


@app.post("/score")
async def score_guesses(request: ScoreRequest) -> Dict[str, float]:
    """Score every player's guess distance."""
    return score(request.distances_km)


@app.post("/jump", response_model=JumpResponse)
async def jump(request: JumpRequest):
    """Move to a panorama about distance_km away along bearing_deg."""
    origin = Coordinate(lat=request.origin.lat, lng=request.origin.lng)
    try:
        result = await locator.jump_by_distance_and_bearing(origin, request.distance_km, request.bearing_deg)
    except LocatorError as e:
        logger.error("Jump failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="No panorama found in that direction")
    return JumpResponse(
        destination=CoordinateModel(**result.destination.to_dict()),
        distance_km=result.actual_distance_km,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
