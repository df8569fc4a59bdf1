import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import commands
import scheduler
from commands import SaveMovieInput, Services
from config import get_settings
from errors import (
    AlreadyCataloged,
    AlreadyProcessed,
    CatalogError,
    DuplicateRequest,
    InvalidInput,
    NotFound,
    PermissionDenied,
    StoreIOError,
)
from models import DM_CONTEXT_ID, DM_CONTEXT_NAME, MovieUpdate
from movie_requests import RequestContext

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_STATUS = {
    NotFound: 404,
    DuplicateRequest: 409,
    AlreadyCataloged: 409,
    AlreadyProcessed: 409,
    InvalidInput: 422,
    PermissionDenied: 403,
}


class NewRequest(BaseModel):
    movie_name: str
    guild_id: str = DM_CONTEXT_ID
    guild_name: str = DM_CONTEXT_NAME


class CleanupBody(BaseModel):
    kind: Literal["old_requests", "duplicate_movies", "full"]
    dry_run: bool = False


class ChannelBody(BaseModel):
    channel_id: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.services = Services.build(settings)
    scheduler.start_scheduler(app.state.services, settings.announcement_schedule)
    yield
    scheduler.stop_scheduler()
    await app.state.services.notifier.aclose()


app = FastAPI(lifespan=lifespan)


def get_services(request: Request) -> Services:
    return request.app.state.services


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if isinstance(exc, StoreIOError):
        logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "internal error, try again"})
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/movies")
async def list_movies(
    language: Optional[str] = None,
    min_rating: Optional[float] = None,
    year_from: Optional[int] = None,
    year_to: Optional[int] = None,
    svc: Services = Depends(get_services),
):
    return await svc.resolver.list_movies(language, min_rating, year_from, year_to)


@app.get("/movies/lookup")
async def lookup_movie(
    q: str,
    x_user_id: str = Header(),
    guild_id: str = DM_CONTEXT_ID,
    guild_name: str = DM_CONTEXT_NAME,
    svc: Services = Depends(get_services),
):
    return await commands.get_movie(svc, q, x_user_id, RequestContext(guild_id, guild_name))


@app.get("/movies/search")
async def search_movies(q: str, limit: int = 10, svc: Services = Depends(get_services)):
    return await commands.search_movies(svc, q, limit)


@app.get("/movies/random")
async def random_movie(featured: bool = False, svc: Services = Depends(get_services)):
    movie = await svc.resolver.random_movie(featured_only=featured)
    if movie is None:
        raise NotFound("Movie", "random")
    return movie


@app.post("/movies")
async def save_movie(body: SaveMovieInput, x_user_id: str = Header(), svc: Services = Depends(get_services)):
    return await commands.save_movie(svc, x_user_id, body)


@app.patch("/movies/{search_name}")
async def update_movie(
    search_name: str, body: MovieUpdate, x_user_id: str = Header(), svc: Services = Depends(get_services)
):
    return await commands.update_movie(svc, x_user_id, search_name, body)


@app.delete("/movies/{movie_id}")
async def delete_movie(movie_id: str, x_user_id: str = Header(), svc: Services = Depends(get_services)):
    return await commands.delete_movie(svc, x_user_id, movie_id)


@app.get("/requests")
async def list_requests(x_user_id: str = Header(), svc: Services = Depends(get_services)):
    return await commands.list_requests(svc, x_user_id)


@app.post("/requests")
async def create_request(body: NewRequest, x_user_id: str = Header(), svc: Services = Depends(get_services)):
    context = RequestContext(body.guild_id, body.guild_name)
    return await commands.request_movie(svc, body.movie_name, x_user_id, context)


@app.post("/requests/{request_id}/reject")
async def reject_request(request_id: str, x_user_id: str = Header(), svc: Services = Depends(get_services)):
    return await commands.reject_request(svc, x_user_id, request_id)


@app.post("/cleanup")
async def cleanup(body: CleanupBody, x_user_id: str = Header(), svc: Services = Depends(get_services)):
    return await commands.cleanup(svc, x_user_id, body.kind, body.dry_run)


@app.put("/guilds/{guild_id}/channel")
async def set_channel(
    guild_id: str, body: ChannelBody, x_user_id: str = Header(), svc: Services = Depends(get_services)
):
    return await commands.set_movie_channel(svc, x_user_id, guild_id, body.channel_id)
