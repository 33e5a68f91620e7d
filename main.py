import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from database import Base, engine

# register every table before create_all
from models.Profile import Profile  # noqa: F401
from models.Trip import Trip  # noqa: F401
from models.TripRequest import TripRequest  # noqa: F401
from models.Message import Message  # noqa: F401
from models.TripDiscussionMessage import TripDiscussionMessage  # noqa: F401

from routes import (
    auth,
    profiles,
    trips,
    trip_requests,
    messages,
    discussion,
    files,
    realtime,
)
from services.exceptions import TripLinkError
from utils.logger import setup_api_logger

Base.metadata.create_all(bind=engine)

app = FastAPI(title="TripLink API (Trips, Join Requests, Messages, Profiles)")

# setup file logger for API failures
api_logger = setup_api_logger()


async def _body_text(request: Request) -> str:
    try:
        body = await request.body()
    except Exception:
        body = b""
    return body.decode('utf-8', errors='replace')


@app.exception_handler(TripLinkError)
async def triplink_exception_handler(request: Request, exc: TripLinkError):
    api_logger.warning("%s on %s %s | status=%s | detail=%s",
                       type(exc).__name__, request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    api_logger.warning("HTTPException on %s %s | status=%s | detail=%s",
                       request.method, request.url.path, exc.status_code, str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # log request info and stacktrace
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    api_logger.error("Unhandled exception on %s %s | body=%s | error=%s\n%s",
                     request.method, request.url.path, await _body_text(request), str(exc), tb)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(trips.router)
app.include_router(trip_requests.router)
app.include_router(trip_requests.router2)
app.include_router(messages.router)
app.include_router(discussion.router)
app.include_router(files.router)
app.include_router(realtime.router)
