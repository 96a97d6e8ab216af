"""
Proxy Package
=============

This package implements the catch-all relay endpoint that forwards inbound
webhook callbacks to the fixed upstream service endpoint.

Main Components:
----------------
- routes.py: FastAPI router with the relay endpoint (any method, any path)

Usage:
------
    from relay.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
