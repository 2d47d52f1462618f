import asyncio
from typing import List, Optional

import pytest
from image_factory import grid_png, solid_png

from sticker_grid.models.grid_shape import GridShape
from sticker_grid.models.raw_image import RAW_IMAGE_SOURCE, RawImage
from sticker_grid.models.segment import Segment
from sticker_grid.models.sheet_metadata import SheetMetadata
from sticker_grid.services.segment_store import InMemorySegmentStore
from sticker_grid.utils.errors import RemoteOperationError
from sticker_grid.utils.image_processing import bytes2data_uri

CELL_SIZE = 256


class FakeAIClient:
    """Stands in for the AI backend, counts calls and can be gated or made to fail"""

    def __init__(self):
        self.calls = {"generate_labels": 0, "upscale": 0, "generate_sheet": 0, "regenerate": 0}
        self.labels: List[str] = []
        self.fail = False
        self.upscale_size: Optional[int] = None
        self.upscale_payload: Optional[bytes] = None
        self.sheet_payload: Optional[bytes] = None
        self.regenerate_payload: Optional[bytes] = None
        self.started: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None

    async def _call(self, name: str):
        self.calls[name] += 1
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RemoteOperationError(f"{name} failed")

    async def generate_labels(self, image_bytes: bytes, mime_type: str = "image/png") -> List[str]:
        await self._call("generate_labels")
        return list(self.labels)

    async def upscale(self, image_bytes: bytes, target_size: int) -> bytes:
        await self._call("upscale")
        if self.upscale_payload is not None:
            return self.upscale_payload
        size = self.upscale_size or target_size
        return solid_png(size, size, 200)

    async def generate_sheet(self, prompt: str, **kwargs) -> bytes:
        await self._call("generate_sheet")
        return self.sheet_payload or grid_png(4, 4, 32, 32)

    async def regenerate(self, image_bytes: bytes, prompt: str) -> bytes:
        await self._call("regenerate")
        return self.regenerate_payload or solid_png(300, 300, 50)


@pytest.fixture(scope="function")
def fake_ai():
    return FakeAIClient()


@pytest.fixture(scope="function")
def segment_store():
    return InMemorySegmentStore()


@pytest.fixture(scope="function")
def sheet_in_store(segment_store):
    """A 2x2 sheet of stable 256x256 segments, returns the sheet id"""
    segments = []
    for i in range(4):
        image_bytes = solid_png(CELL_SIZE, CELL_SIZE, 40 * (i + 1))
        segments.append(
            Segment(
                id=i,
                image_bytes=image_bytes,
                preview=bytes2data_uri(image_bytes),
                label=f"sticker_{i + 1}",
                processing=False,
            )
        )
    metadata = SheetMetadata(
        id="5a0cbd5e-3a4f-4d0a-9b0e-0c1d2e3f4a5b",
        grid_shape=GridShape(rows=2, cols=2),
        cell_width=CELL_SIZE,
        cell_height=CELL_SIZE,
        generated=False,
    )
    source = RawImage(
        sheet_id=metadata.id,
        category=RAW_IMAGE_SOURCE,
        mime_type="image/png",
        image_bytes=solid_png(CELL_SIZE * 2, CELL_SIZE * 2),
    )
    segment_store.insert_sheet(metadata, source, segments)
    return metadata.id
