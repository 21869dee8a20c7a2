"""Carts domain API package."""

from carts.api.routes import cart_router, maintenance_router, saved_cart_router

__all__ = ["cart_router", "maintenance_router", "saved_cart_router"]
