"""
HTTP API for the AirPlay Hub web UI.

All endpoints are GET and answer JSON, so they can be driven straight from
a browser address bar:

    /startzone/{name}          start streaming to a zone
    /stopzone/{name}           stop a zone
    /setvol/{name}/{volume}    set a zone's own volume (0-100)
    /hidezone/{name}           hide a zone from /zones
    /showzone/{name}           show it again
    /zones                     non-hidden zones
    /trackinfo                 current track metadata
    /status                    session / volume overview

Unknown zones answer ``{"error": "zone not found"}`` with HTTP 200, which is
what the web UI expects.  Static UI files are served from the web root when
that directory exists.
"""

import logging
import os

from aiohttp import web

logger = logging.getLogger("airplayhub.http")

HUB = web.AppKey("hub")

STATIC_CACHE = "public, max-age=0"
ICON_CACHE = "public, max-age=31536000"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
async def handle_index(request: web.Request) -> web.Response:
    raise web.HTTPFound("/Index.html")


async def handle_start_zone(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    logger.debug("Zone start requested for %s", name)
    return web.json_response(request.app[HUB].start_zone(name))


async def handle_stop_zone(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    logger.debug("Zone stop requested for %s", name)
    return web.json_response(request.app[HUB].stop_zone(name))


async def handle_set_volume(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    volume = request.match_info["volume"]
    logger.debug("Volume change requested for %s: %s", name, volume)
    return web.json_response(request.app[HUB].set_zone_volume(name, volume))


async def handle_hide_zone(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    logger.debug("Zone hide requested for %s", name)
    return web.json_response(request.app[HUB].hide_zone(name))


async def handle_show_zone(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    logger.debug("Zone show requested for %s", name)
    return web.json_response(request.app[HUB].show_zone(name))


async def handle_zones(request: web.Request) -> web.Response:
    logger.debug("Zone list requested")
    return web.json_response(request.app[HUB].visible_zones())


async def handle_trackinfo(request: web.Request) -> web.Response:
    logger.debug("Trackinfo requested")
    return web.json_response(request.app[HUB].trackinfo())


async def handle_status(request: web.Request) -> web.Response:
    return web.json_response(request.app[HUB].status())


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        resp = await handler(request)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return resp


async def _static_cache_headers(request: web.Request, response: web.StreamResponse):
    if request.path.startswith("/icons/"):
        response.headers["Cache-Control"] = ICON_CACHE
    elif isinstance(response, web.FileResponse):
        response.headers["Cache-Control"] = STATIC_CACHE


def create_app(hub, webroot: str | None = None) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[HUB] = hub
    app.router.add_get("/", handle_index)
    app.router.add_get("/startzone/{name}", handle_start_zone)
    app.router.add_get("/stopzone/{name}", handle_stop_zone)
    app.router.add_get("/setvol/{name}/{volume}", handle_set_volume)
    app.router.add_get("/hidezone/{name}", handle_hide_zone)
    app.router.add_get("/showzone/{name}", handle_show_zone)
    app.router.add_get("/zones", handle_zones)
    app.router.add_get("/trackinfo", handle_trackinfo)
    app.router.add_get("/status", handle_status)

    if webroot and os.path.isdir(webroot):
        icons = os.path.join(webroot, "icons")
        if os.path.isdir(icons):
            app.router.add_static("/icons", icons)
        app.router.add_static("/", webroot)
        app.on_response_prepare.append(_static_cache_headers)
        logger.info("Serving web UI from %s", webroot)
    else:
        logger.info("No web root at %s, serving API only", webroot)
    return app
