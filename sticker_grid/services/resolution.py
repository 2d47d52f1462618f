import asyncio
from typing import Optional, Protocol

from sticker_grid.models.segment import Segment
from sticker_grid.services.abstract_store import AbstractSegmentStore
from sticker_grid.utils.errors import DecodeError, RemoteOperationError
from sticker_grid.utils.image_processing import dimensions_of, reencode_bytes, resample_bytes


class Upscaler(Protocol):
    async def upscale(self, image_bytes: bytes, target_size: int) -> bytes:
        ...


class ResolutionAdjuster:
    """
    Rescales a single segment to a square target size. Targets up to the current width are resampled locally,
    larger targets are delegated to the AI upscaler.
    """

    def __init__(self, upscaler: Upscaler, segment_store: AbstractSegmentStore):
        self.upscaler = upscaler
        self.segment_store = segment_store

    async def adjust_resolution(self, sheet_id: str, segment_id: int, target_size: int) -> Optional[Segment]:
        """
        Rescale a segment and swap the result into the store. On failure the previous image is kept.
        Args:
            sheet_id: The sheet the segment belongs to
            segment_id: The segment id
            target_size: The edge length of the square result

        Returns: The updated segment, None if the sheet was reset before the result arrived

        Raises:
            ConcurrentMutationError: The segment is already being modified
            RemoteOperationError: The AI upscale failed
            DecodeError: The current payload is not a decodable image

        """
        if target_size < 1:
            raise ValueError(f"target_size has to be positive, got {target_size}")

        with self.segment_store.mutation(sheet_id, segment_id) as segment:
            image_bytes = await self.resize(segment.image_bytes, target_size)
            applied = self.segment_store.apply_image(sheet_id, segment_id, image_bytes)
        if not applied:
            return None
        return self.segment_store.get_segment(sheet_id, segment_id)

    async def resize(self, image_bytes: bytes, target_size: int) -> bytes:
        current = dimensions_of(image_bytes)
        loop = asyncio.get_running_loop()
        if target_size <= current.width:
            return await loop.run_in_executor(None, resample_bytes, image_bytes, target_size)

        upscaled = await self.upscaler.upscale(image_bytes, target_size)
        try:
            return await loop.run_in_executor(None, reencode_bytes, upscaled, target_size)
        except DecodeError as exc:
            raise RemoteOperationError("AI upscale returned an undecodable image") from exc
