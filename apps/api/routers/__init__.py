"""Routers package."""

from . import (
    health,
    auth,
    media,
    secrets,
    reveal,
)
