"""
Image Resource Server
Serves generated images over HTTP and lists what has been generated
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from ai.exceptions.imagen_exceptions import ListError
from config import APP_VERSION
from media.artifact_store import ArtifactStore
from utils.error_handler import handle_error
from utils.logging_config import get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


@web.middleware
async def cors_middleware(request, handler):
    """Allow cross-origin requests unconditionally"""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


class ResourceServer:
    """Static HTTP server for the images directory"""

    def __init__(self, store: ArtifactStore, host: str = "127.0.0.1", port: int = 9981,
                 logger: logging.Logger = logger):
        self.store = store
        self.host = host
        self.port = port
        self.logger = logger
        self.app = web.Application(middlewares=[cors_middleware])
        self.runner: Optional[web.AppRunner] = None
        self.setup_routes()

    def setup_routes(self):
        """Setup HTTP routes"""
        self.app.router.add_get("/health", self.health_check)
        self.app.router.add_get("/images/{filename}", self.serve_image)
        self.app.router.add_get("/list-images", self.list_images)

    async def health_check(self, request):
        return web.json_response(
            {
                "status": "healthy",
                "version": APP_VERSION,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    async def serve_image(self, request):
        """Stream one generated image"""
        filename = request.match_info["filename"]
        path = self.store.path_for(filename)
        if path is None:
            self.logger.info(f"Image not found: {filename}")
            raise web.HTTPNotFound(text="Image not found.")
        return web.FileResponse(path)

    async def list_images(self, request):
        """List the filenames of all generated images"""
        self.logger.info("Received request to list images.")
        try:
            filenames = self.store.list()
        except ListError as e:
            handle_error(e, {"route": "/list-images"}, log=self.logger)
            return web.Response(status=500, text="Failed to list images.")
        return web.json_response(filenames)

    async def start(self):
        """Bind and start serving; returns once the socket is listening"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        self.logger.info(
            f"Starting HTTP server for image resources (address=http://{self.host}:{self.port}, "
            f"images_dir={self.store.images_dir})"
        )

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.logger.info("HTTP server shut down.")
