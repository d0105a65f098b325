"""Pydantic models for image generation requests and responses"""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_ASPECT_RATIOS = ["1:1", "3:4", "4:3", "9:16", "16:9"]
DEFAULT_ASPECT_RATIO = "1:1"


class ImagePrompt(BaseModel):
    """Arguments of the generate_image tool"""
    prompt: str = Field(
        description="The prompt text for image generation. The prompt MUST be in English."
    )
    # Any JSON value is accepted here; unsupported values are reported by the tool itself
    aspect_ratio: Optional[Any] = Field(
        default=None,
        description=(
            "The aspect ratio of the image to generate. Supported values are "
            '"1:1", "3:4", "4:3", "9:16", and "16:9". The default is "1:1".'
        ),
    )


class ImagenInstance(BaseModel):
    prompt: str


class ImagenParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sample_count: int = Field(default=1, alias="sampleCount")
    aspect_ratio: Optional[str] = Field(default=None, alias="aspectRatio")


class ImagenRequest(BaseModel):
    """Request body for the Imagen predict endpoint"""
    instances: List[ImagenInstance]
    parameters: ImagenParameters

    @classmethod
    def for_prompt(cls, prompt: str, aspect_ratio: Optional[str] = None) -> "ImagenRequest":
        return cls(
            instances=[ImagenInstance(prompt=prompt)],
            parameters=ImagenParameters(sample_count=1, aspect_ratio=aspect_ratio),
        )

    def to_payload(self) -> dict:
        # aspectRatio is left out entirely when unset so the provider default applies
        return self.model_dump(by_alias=True, exclude_none=True)


class ImagenPrediction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mime_type: str = Field(default="image/png", alias="mimeType")
    bytes_base64_encoded: str = Field(alias="bytesBase64Encoded")


class ImagenErrorDetail(BaseModel):
    message: str = ""


class ImagenResponse(BaseModel):
    """Response body of the Imagen predict endpoint"""
    predictions: List[ImagenPrediction] = Field(default_factory=list)
    error: Optional[ImagenErrorDetail] = None


class ServerInfo(BaseModel):
    name: str
    version: str


class ServerCapabilities(BaseModel):
    tools: bool = True


class ServerDescriptor(BaseModel):
    """Static server metadata returned by get_info"""
    model_config = ConfigDict(frozen=True)

    server_info: ServerInfo
    instructions: Optional[str] = None
    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)
