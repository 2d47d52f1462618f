import asyncio
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set

from sticker_grid.models.raw_image import RawImage
from sticker_grid.models.segment import Segment
from sticker_grid.models.sheet_metadata import SheetMetadata
from sticker_grid.services.abstract_store import AbstractSegmentStore
from sticker_grid.utils.errors import ConcurrentMutationError, SegmentNotFoundError
from sticker_grid.utils.image_processing import bytes2data_uri


class _SheetEntry:
    def __init__(self, metadata: SheetMetadata, source: RawImage, segments: List[Segment]):
        self.metadata = metadata
        self.source = source
        self.segments: Dict[int, Segment] = {s.id: s for s in segments}
        self.mutating: Set[int] = set()
        self.label_task: Optional[asyncio.Task] = None


class InMemorySegmentStore(AbstractSegmentStore):
    """
    The working sets (sheets) of the service and the only place segments are mutated.

    Segments are never modified in place. Every write builds a new Segment and swaps it into the sheet, so a reader
    always sees a consistent image_bytes/preview pair. Results of async operations are tagged with the sheet id and
    dropped if the sheet has been discarded in the meantime.
    """

    def __init__(self):
        self._sheets: Dict[str, _SheetEntry] = {}

    def clear(self):
        for sheet_id in list(self._sheets):
            self.delete_sheet(sheet_id)

    def sheet_exists(self, sheet_id: str) -> bool:
        return sheet_id in self._sheets

    def sheet_count(self) -> int:
        return len(self._sheets)

    def insert_sheet(self, metadata: SheetMetadata, source: RawImage, segments: List[Segment]):
        self._sheets[metadata.id] = _SheetEntry(metadata, source, segments)

    def delete_sheet(self, sheet_id: str):
        entry = self._sheets.pop(sheet_id, None)
        if entry is None:
            raise SegmentNotFoundError(f"Sheet {sheet_id} does not exist.")
        if entry.label_task and not entry.label_task.done():
            entry.label_task.cancel()

    def _entry(self, sheet_id: str) -> _SheetEntry:
        entry = self._sheets.get(sheet_id)
        if entry is None:
            raise SegmentNotFoundError(f"Sheet {sheet_id} does not exist.")
        return entry

    def read_sheet_metadata(self, sheet_id: str) -> SheetMetadata:
        return self._entry(sheet_id).metadata

    def read_source_image(self, sheet_id: str) -> RawImage:
        return self._entry(sheet_id).source

    def get_segments(self, sheet_id: str) -> List[Segment]:
        segments = self._entry(sheet_id).segments
        return [segments[i] for i in sorted(segments)]

    def get_segment(self, sheet_id: str, segment_id: int) -> Segment:
        segment = self._entry(sheet_id).segments.get(segment_id)
        if segment is None:
            raise SegmentNotFoundError(f"Segment {segment_id} of sheet {sheet_id} does not exist.")
        return segment

    def set_label_task(self, sheet_id: str, task: asyncio.Task):
        self._entry(sheet_id).label_task = task

    def get_label_task(self, sheet_id: str) -> Optional[asyncio.Task]:
        return self._entry(sheet_id).label_task

    def finish_labeling(self, sheet_id: str, labels: Optional[List[str]]) -> bool:
        """
        Write the result of a label enrichment into the sheet and mark the segments as stable
        Args:
            sheet_id: The sheet the labels were requested for
            labels: Labels in reading order, None if the enrichment failed (placeholders are kept)

        Returns: False if the sheet no longer exists and the labels were discarded, True otherwise

        """
        entry = self._sheets.get(sheet_id)
        if entry is None:
            logging.warning("Discarding labels for sheet %s, the sheet has been reset", sheet_id)
            return False
        for segment_id, segment in list(entry.segments.items()):
            update = {}
            if labels and segment_id < len(labels) and isinstance(labels[segment_id], str):
                label = labels[segment_id].strip()
                if label:
                    update["label"] = label
            # segments under mutation clear their own flag when the mutation ends
            if segment_id not in entry.mutating:
                update["processing"] = False
            entry.segments[segment_id] = segment.model_copy(update=update)
        entry.metadata = entry.metadata.model_copy(update={"labels_enriched": labels is not None})
        return True

    def update_label(self, sheet_id: str, segment_id: int, label: str) -> Segment:
        segment = self.get_segment(sheet_id, segment_id).model_copy(update={"label": label})
        self._entry(sheet_id).segments[segment_id] = segment
        return segment

    @contextmanager
    def mutation(self, sheet_id: str, segment_id: int) -> Iterator[Segment]:
        """
        Claim a segment for a single mutation. The segment is flagged as processing while the claim is held.

        Raises:
            ConcurrentMutationError: Another mutation of this segment is still in flight

        """
        entry = self._entry(sheet_id)
        segment = self.get_segment(sheet_id, segment_id)
        if segment_id in entry.mutating:
            raise ConcurrentMutationError(f"Segment {segment_id} of sheet {sheet_id} is already being modified.")
        entry.mutating.add(segment_id)
        entry.segments[segment_id] = segment.model_copy(update={"processing": True})
        try:
            yield entry.segments[segment_id]
        finally:
            entry.mutating.discard(segment_id)
            if self._sheets.get(sheet_id) is entry:
                current = entry.segments[segment_id]
                entry.segments[segment_id] = current.model_copy(update={"processing": False})

    def apply_image(self, sheet_id: str, segment_id: int, image_bytes: bytes) -> bool:
        """
        Replace the image payload and preview of a segment in one step
        Returns: False if the sheet has been reset and the image was discarded, True otherwise
        """
        entry = self._sheets.get(sheet_id)
        if entry is None:
            logging.warning("Discarding image for segment %s, sheet %s has been reset", segment_id, sheet_id)
            return False
        current = self.get_segment(sheet_id, segment_id)
        entry.segments[segment_id] = current.model_copy(
            update={"image_bytes": image_bytes, "preview": bytes2data_uri(image_bytes)}
        )
        return True


# initialize in-memory store
store = InMemorySegmentStore()
