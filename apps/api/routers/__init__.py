"""Routers package."""

from . import (
    credits,
    env,
    health,
    images,
    leads,
    sites,
    tenant,
)
