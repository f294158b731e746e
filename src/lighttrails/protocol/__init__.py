from .constants import (
    T_CLEAR,
    T_CLIENT_JOINED,
    T_CLIENT_LEFT,
    T_ERROR,
    T_LIGHT_TRAIL,
    T_METEOR_SHOWER,
    T_MOUSE_POSITION,
    T_PING,
    T_PONG,
    T_SETTINGS_ACK,
    T_UPDATE_SETTINGS,
    T_USER_SETTINGS,
    T_WELCOME,
)
from .messages import MalformedMessage, decode_envelope, encode, parse_inbound
from .settings import SettingsRecord, default_settings, sanitize

__all__ = [
    "T_CLEAR",
    "T_CLIENT_JOINED",
    "T_CLIENT_LEFT",
    "T_ERROR",
    "T_LIGHT_TRAIL",
    "T_METEOR_SHOWER",
    "T_MOUSE_POSITION",
    "T_PING",
    "T_PONG",
    "T_SETTINGS_ACK",
    "T_UPDATE_SETTINGS",
    "T_USER_SETTINGS",
    "T_WELCOME",
    "MalformedMessage",
    "SettingsRecord",
    "decode_envelope",
    "default_settings",
    "encode",
    "parse_inbound",
    "sanitize",
]
