"""Routers package."""

from . import (
    health,
    projects,
    billing,
)
