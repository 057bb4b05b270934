"""
Version reporting endpoint.
"""
from aiohttp import web

from itb_shared.version import get_version_info

from ...shared import Result
from ..core import _json_response


def register_version_routes(routes: web.RouteTableDef) -> None:
    """
    Expose the installed metadata engine version.
    """
    async def _get_version(_request: web.Request) -> web.Response:
        data = get_version_info()
        return _json_response(Result.Ok(data))

    routes.get("/itb/version")(_get_version)
