import base64
import binascii
from typing import Any, List, Optional

import httpx

from sticker_grid.utils.errors import RemoteOperationError
from sticker_grid.utils.image_processing import OUTPUT_MIME_TYPE


class AIClient:
    """
    Client for the AI backend proxy. Every call is a single request, failures are raised as RemoteOperationError
    and never retried.
    """

    def __init__(self, base_url: str, timeout: float = 120.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def generate_labels(self, image_bytes: bytes, mime_type: str = OUTPUT_MIME_TYPE) -> List[str]:
        """
        Ask for one short label per grid cell of a sheet
        Args:
            image_bytes: The whole source image
            mime_type: The mime type of the source image

        Returns: The labels in reading order

        """
        data = await self._post(
            "/api/generate-labels",
            {"imageBase64": _b64encode(image_bytes), "mimeType": mime_type},
            "Failed to generate labels",
        )
        if not isinstance(data, list):
            raise RemoteOperationError("Label response is not a list")
        return [str(label) for label in data]

    async def upscale(self, image_bytes: bytes, target_size: int) -> bytes:
        data = await self._post(
            "/api/upscale",
            {"imageBase64": _b64encode(image_bytes), "targetSize": target_size},
            "Failed to upscale image",
        )
        return _read_image(data)

    async def generate_sheet(
        self,
        prompt: str,
        subject_bytes: Optional[bytes] = None,
        subject_mime_type: Optional[str] = None,
        style_bytes: Optional[bytes] = None,
        style_mime_type: Optional[str] = None,
    ) -> bytes:
        """
        Generate a new sticker sheet from a text prompt and optional reference images
        Args:
            prompt: The description of the stickers
            subject_bytes: A reference image for the character/object design
            subject_mime_type: The mime type of the subject reference
            style_bytes: A reference image for the artistic style
            style_mime_type: The mime type of the style reference

        Returns: The generated sheet as binary image

        """
        payload: dict = {"prompt": prompt}
        if subject_bytes:
            payload["subjectBase64"] = _b64encode(subject_bytes)
            payload["subjectMimeType"] = subject_mime_type or OUTPUT_MIME_TYPE
        if style_bytes:
            payload["styleBase64"] = _b64encode(style_bytes)
            payload["styleMimeType"] = style_mime_type or OUTPUT_MIME_TYPE
        data = await self._post("/api/generate-sheet", payload, "Failed to generate sticker sheet")
        return _read_image(data)

    async def regenerate(self, image_bytes: bytes, prompt: str) -> bytes:
        data = await self._post(
            "/api/regenerate",
            {"originalBase64": _b64encode(image_bytes), "prompt": prompt},
            "Failed to regenerate sticker",
        )
        return _read_image(data)

    async def _post(self, path: str, payload: dict, error_message: str) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise RemoteOperationError(f"{error_message}: {exc}") from exc

        if not response.is_success:
            raise RemoteOperationError(_error_detail(response) or f"{error_message} ({response.status_code})")
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteOperationError(f"{error_message}: invalid response body") from exc


def _b64encode(byte_arr: bytes) -> str:
    return base64.b64encode(byte_arr).decode("ascii")


def _read_image(data: Any) -> bytes:
    if not isinstance(data, dict) or not data.get("imageBase64"):
        raise RemoteOperationError("No image generated")
    encoded = data["imageBase64"]
    # strip a data uri prefix if present
    if "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        return base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        raise RemoteOperationError("Image in response is not valid base64") from exc


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None
