"""Framework route wiring."""

from .inngest import build_router, setup_aiohttp

__all__ = ["build_router", "setup_aiohttp"]
