"""Custom exceptions for the Imagen server"""
from typing import Optional


class ImagenError(Exception):
    """Base exception for all Imagen server errors"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class StartupError(ImagenError):
    """Missing or invalid configuration, fatal before serving"""
    pass


class ValidationError(ImagenError):
    """Exception for invalid tool arguments"""
    pass


class GenerationError(ImagenError):
    """Base exception for failures while talking to the provider"""
    pass


class ProviderHttpError(GenerationError):
    """Provider answered with a non-success status, or could not be reached"""
    def __init__(self, status_code: Optional[int], body: str):
        self.body = body
        if status_code is None:
            message = f"Imagen API request failed: {body}"
        else:
            message = f"Imagen API request failed with status {status_code}: {body}"
        super().__init__(message, status_code)


class ProviderDecodeError(GenerationError):
    """Provider body could not be parsed"""
    def __init__(self, error: Exception, body: str):
        self.error = error
        self.body = body
        super().__init__(
            f"Failed to parse Imagen response: {error}. The response was: {body}"
        )


class ProviderApiError(GenerationError):
    """Provider returned an error object"""
    def __init__(self, message: str):
        super().__init__(f"Imagen API Error: {message}")


class NoImagesGenerated(GenerationError):
    """Provider returned no predictions, usually a safety filter rejection"""
    def __init__(self):
        super().__init__(
            "No images were generated. This might be due to the image not "
            "passing Google's safety review."
        )


class PayloadDecodeError(GenerationError):
    """A prediction's base64 payload could not be decoded"""
    def __init__(self, index: int, error: Exception):
        self.index = index
        super().__init__(f"Failed to decode image payload #{index}: {error}")


class StorageError(ImagenError):
    """Base exception for artifact filesystem errors"""
    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


class PersistError(StorageError):
    """Writing an artifact failed"""
    def __init__(self, path: str, error: Exception):
        super().__init__(f"Failed to write image to {path}: {error}", path)


class ListError(StorageError):
    """Enumerating artifacts failed"""
    def __init__(self, path: str, error: Exception):
        super().__init__(f"Failed to list images in {path}: {error}", path)


class RpcError(ImagenError):
    """Base exception for protocol-level failures, answered as RPC errors"""
    pass


class RpcParseError(RpcError):
    """Input line is not valid JSON"""
    def __init__(self, error: Exception):
        super().__init__(f"Parse error: {error}")


class UnknownMethodError(RpcError):
    """Method outside the supported set"""
    def __init__(self, method):
        self.method = method
        super().__init__(f"Unknown method: {method}")


class InvalidParamsError(RpcError):
    """Envelope or params do not match the method's shape"""
    def __init__(self, detail: str):
        super().__init__(f"Invalid params: {detail}")
