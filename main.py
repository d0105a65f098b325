# imagen3-mcp - Imagen 3 image generation tool server
# Copyright (C) 2025 The imagen3-mcp contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

from config import (
    ENV_API_KEY,
    LOG_BACKUP_DAYS,
    ServerConfig,
    ensure_directories,
    load_config,
    resolve_logging,
)
from ai.exceptions.imagen_exceptions import StartupError
from ai.imagen import ImagenClient
from media.artifact_store import ArtifactStore
from media.image_generator import ImageService
from tools.resource_server import ResourceServer
from tools.rpc_server import RpcServer, connect_stdio
from utils.error_handler import handle_error
from utils.logging_config import setup_logging
import asyncio
import sys
import logging

logger = logging.getLogger(__name__)


async def serve(config: ServerConfig) -> None:
    """Run the resource server and the RPC loop until stdin closes"""
    store = ArtifactStore(config.images_dir)

    async with ImagenClient(
        api_key=config.api_key,
        base_url=config.base_url,
        model=config.model,
        timeout=config.request_timeout,
    ) as client:
        service = ImageService(client, store, config.advertised_host, config.port)
        resource_server = ResourceServer(store, config.listen_addr, config.port)

        await resource_server.start()
        try:
            reader, writer = await connect_stdio()
            logger.info("🚀 Starting MCP server...")
            await RpcServer(service, reader, writer).serve()
            logger.info("MCP server stdin closed, shutting down.")
        finally:
            await resource_server.stop()


def main() -> int:
    """Main entry point; returns the process exit code"""
    log_level, log_file_path = resolve_logging()

    try:
        setup_logging(log_level, log_to_file=True, log_file_path=str(log_file_path),
                      backup_count=LOG_BACKUP_DAYS)
    except OSError as e:
        setup_logging(log_level)
        logger.critical(f"❌ Could not create log directory at {log_file_path.parent}: {e}")
        return 1
    logger.info(f"Logging initialized. Logging to console and {log_file_path.parent}")

    try:
        config = load_config()
        ensure_directories(config)
    except StartupError as e:
        handle_error(e, {"phase": "startup"})
        return 1

    logger.info(f"✅ {ENV_API_KEY} found. Serving images from {config.images_dir}")

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("🛑 Stopped by user")
    except Exception as e:
        logger.exception(f"💀 Unhandled error in main function: {e}")
        return 1
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
