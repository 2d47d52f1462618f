import asyncio
from abc import ABC
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sticker_grid.models.raw_image import RawImage
from sticker_grid.models.segment import Segment
from sticker_grid.models.sheet_metadata import SheetMetadata


class AbstractSegmentStore(ABC):
    def clear(self):
        raise NotImplementedError()

    def sheet_exists(self, sheet_id: str) -> bool:
        raise NotImplementedError()

    def sheet_count(self) -> int:
        raise NotImplementedError()

    def insert_sheet(self, metadata: SheetMetadata, source: RawImage, segments: List[Segment]):
        raise NotImplementedError()

    def delete_sheet(self, sheet_id: str):
        raise NotImplementedError()

    def read_sheet_metadata(self, sheet_id: str) -> SheetMetadata:
        raise NotImplementedError()

    def read_source_image(self, sheet_id: str) -> RawImage:
        raise NotImplementedError()

    def get_segments(self, sheet_id: str) -> List[Segment]:
        raise NotImplementedError()

    def get_segment(self, sheet_id: str, segment_id: int) -> Segment:
        raise NotImplementedError()

    def set_label_task(self, sheet_id: str, task: asyncio.Task):
        raise NotImplementedError()

    def get_label_task(self, sheet_id: str) -> Optional[asyncio.Task]:
        raise NotImplementedError()

    def finish_labeling(self, sheet_id: str, labels: Optional[List[str]]) -> bool:
        raise NotImplementedError()

    def update_label(self, sheet_id: str, segment_id: int, label: str) -> Segment:
        raise NotImplementedError()

    @contextmanager
    def mutation(self, sheet_id: str, segment_id: int) -> Iterator[Segment]:
        raise NotImplementedError()

    def apply_image(self, sheet_id: str, segment_id: int, image_bytes: bytes) -> bool:
        raise NotImplementedError()
