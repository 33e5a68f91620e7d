from . import auth
from . import profiles
from . import trips
from . import trip_requests
from . import messages
from . import discussion
from . import files
from . import realtime

__all__ = [
    "auth",
    "profiles",
    "trips",
    "trip_requests",
    "messages",
    "discussion",
    "files",
    "realtime",
]
