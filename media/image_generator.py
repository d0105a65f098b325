import asyncio
import json
import logging
from typing import Any, List, Optional

from ai.exceptions.imagen_exceptions import ImagenError, ValidationError
from ai.imagen import ImagenClient
from ai.models.image_models import SUPPORTED_ASPECT_RATIOS, ServerDescriptor, ServerInfo
from config import APP_NAME, APP_VERSION, SERVER_INSTRUCTIONS
from media.artifact_store import ArtifactStore
from utils.error_handler import handle_error
from utils.logging_config import get_logger

logger = get_logger(__name__)

SERVER_DESCRIPTOR = ServerDescriptor(
    server_info=ServerInfo(name=APP_NAME, version=APP_VERSION),
    instructions=SERVER_INSTRUCTIONS.strip(),
)


class ImageService:
    """
    The generate_image tool: validates arguments, generates, persists and
    returns public URLs.

    Tool failures are never raised; they come back as the text of the tool
    result, because the agent reads the result text either way.
    """

    def __init__(
        self,
        client: ImagenClient,
        store: ArtifactStore,
        advertised_host: str,
        port: int,
        logger: logging.Logger = logger,
    ):
        self.client = client
        self.store = store
        self.advertised_host = advertised_host
        self.port = port
        self.logger = logger

    def image_url(self, filename: str) -> str:
        return f"http://{self.advertised_host}:{self.port}/images/{filename}"

    def validate(self, prompt: str, aspect_ratio: Optional[Any]) -> None:
        if aspect_ratio is not None and aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
            shown = aspect_ratio if isinstance(aspect_ratio, str) else json.dumps(aspect_ratio)
            raise ValidationError(
                f"Invalid aspect ratio: {shown}, supported values are: "
                f"{', '.join(SUPPORTED_ASPECT_RATIOS)}"
            )
        if not prompt or not prompt.strip():
            raise ValidationError("Invalid prompt: prompt must not be empty")

    async def generate_image(self, prompt: str, aspect_ratio: Optional[Any] = None) -> str:
        """
        Generate an image based on a prompt. Returns image URLs, one per line,
        that can be used in markdown format like ![description](URL).
        """
        context = {
            "method": "generate_image",
            "prompt_length": len(prompt or ""),
            "aspect_ratio": aspect_ratio,
        }
        self.logger.info(f"Received image generation request {context}")

        try:
            self.validate(prompt, aspect_ratio)
        except ValidationError as e:
            return handle_error(e, context, log=self.logger).user_message

        try:
            images = await self.client.generate(prompt, aspect_ratio)
            # Disk writes stay off the loop that also serves HTTP
            filenames = await asyncio.to_thread(self.store.persist, images)
        except ImagenError as e:
            if e.status_code is not None:
                context["status_code"] = e.status_code
            handled = handle_error(
                e,
                context,
                user_message=f"Error generating image: {e.message}",
                secrets=[self.client.api_key],
                log=self.logger,
            )
            return handled.user_message

        urls = self.image_urls(filenames)
        self.logger.info(f"Image generation successful. {len(filenames)} image(s) created.")
        return "\n".join(urls)

    def image_urls(self, filenames: List[str]) -> List[str]:
        return [self.image_url(filename) for filename in filenames]

    def get_info(self) -> ServerDescriptor:
        """Information about the server and its capabilities, including instructions for the tool"""
        return SERVER_DESCRIPTOR
