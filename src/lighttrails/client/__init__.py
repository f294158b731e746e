from .collision import CollisionDetector, Contact
from .config import ClientSettings, get_client_settings
from .connection import ConnectionState, ReconnectingClient
from .session import LightTrailsSession
from .state import ClientState, Frame
from .store import CursorSample, TrailPoint, TrailStore

__all__ = [
    "ClientSettings",
    "ClientState",
    "CollisionDetector",
    "ConnectionState",
    "Contact",
    "CursorSample",
    "Frame",
    "LightTrailsSession",
    "ReconnectingClient",
    "TrailPoint",
    "TrailStore",
    "get_client_settings",
]
