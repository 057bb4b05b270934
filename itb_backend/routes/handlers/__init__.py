"""Route handler modules; each exposes a `register_*_routes(routes)` function."""
from .geninfo import register_geninfo_routes
from .version import register_version_routes

__all__ = ["register_geninfo_routes", "register_version_routes"]
