"""
HTTP surface for the metadata engine.
Importing this package is side-effect free; route registration is explicit.
"""
from .registry import create_app, register_all_routes, register_routes

__all__ = ["create_app", "register_routes", "register_all_routes"]
