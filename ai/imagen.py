"""Async client for the Imagen 3 predict API"""
import base64
import binascii
import json
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ai.exceptions.imagen_exceptions import (
    NoImagesGenerated,
    PayloadDecodeError,
    ProviderApiError,
    ProviderDecodeError,
    ProviderHttpError,
)
from ai.models.image_models import ImagenRequest, ImagenResponse
from config import DEFAULT_BASE_URL, DEFAULT_IMAGEN_MODEL
from utils.error_handler import redact_secrets
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ImagenClient:
    """
    Calls the Imagen predict endpoint once per request and returns the decoded
    image payloads. No retries are performed.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_IMAGEN_MODEL,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: logging.Logger = logger,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.logger = logger

        # Caller-supplied clients stay open; we only close what we create
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:predict"

    async def generate(self, prompt: str, aspect_ratio: Optional[str] = None) -> List[bytes]:
        """
        Generate images for a prompt and return their raw bytes, in prediction order.

        Raises ProviderHttpError, ProviderDecodeError, ProviderApiError,
        NoImagesGenerated or PayloadDecodeError.
        """
        request = ImagenRequest.for_prompt(prompt, aspect_ratio)
        payload = request.to_payload()

        self.logger.info(
            f"Sending request to Imagen (model={self.model}, prompt_length={len(prompt)}, "
            f"aspect_ratio={aspect_ratio or 'default'})"
        )
        self.logger.debug(f"📤 Imagen payload: {json.dumps(payload)}")

        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
            )
        except httpx.HTTPError as e:
            # str(e) can carry the request URL, which embeds the key
            self.logger.error(f"Failed to send request to Imagen: {type(e).__name__}")
            raise ProviderHttpError(None, redact_secrets(f"{type(e).__name__}: {e}", [self.api_key]))

        body = response.text
        if not response.is_success:
            self.logger.error(
                f"Imagen request failed (status={response.status_code}, body_length={len(body)})"
            )
            raise ProviderHttpError(response.status_code, body)

        imagen_response = self._parse_response(body)

        if imagen_response.error is not None:
            self.logger.error(f"Imagen API returned an error: {imagen_response.error.message}")
            raise ProviderApiError(imagen_response.error.message)

        predictions = imagen_response.predictions
        if not predictions:
            self.logger.error("No images were generated by Imagen. This might be due to safety filters.")
            raise NoImagesGenerated()

        images = []
        for index, prediction in enumerate(predictions):
            try:
                images.append(base64.b64decode(prediction.bytes_base64_encoded, validate=True))
            except (binascii.Error, ValueError) as e:
                self.logger.error(f"Failed to decode base64 payload #{index}: {e}")
                raise PayloadDecodeError(index, e)

        self.logger.info(f"Imagen returned {len(images)} image(s)")
        return images

    def _parse_response(self, body: str) -> ImagenResponse:
        try:
            return ImagenResponse.model_validate_json(body)
        except PydanticValidationError as e:
            self.logger.error(f"Failed to parse Imagen response (body_length={len(body)})")
            raise ProviderDecodeError(e, body)
