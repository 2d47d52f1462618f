import asyncio
import logging
from typing import List, Optional

from fastapi import HTTPException

from sticker_grid.models.app_config import get_config
from sticker_grid.models.grid_shape import GridShape
from sticker_grid.models.image_dimensions import ImageDimensions
from sticker_grid.models.raw_image import RAW_IMAGE_SOURCE, RawImage
from sticker_grid.models.segment import Segment
from sticker_grid.models.sheet_metadata import SheetMetadata
from sticker_grid.services.ai_client import AIClient
from sticker_grid.services.grid_slicing import GridSlicer
from sticker_grid.services.resolution import ResolutionAdjuster
from sticker_grid.services.segment_store import store
from sticker_grid.utils.archive import segments_2_zip
from sticker_grid.utils.errors import DecodeError, RemoteOperationError
from sticker_grid.utils.image_processing import (
    OUTPUT_MIME_TYPE,
    dimensions_of,
    reencode_bytes,
)
from sticker_grid.utils.request_validation import generate_id


class SheetManagementService:
    """Service for creation, modification, export and deletion of sticker sheets"""

    def __init__(self, ai_client=None):
        self.slicer = GridSlicer(label_prefix=get_config().label_placeholder_prefix)
        self.enable_label_enrichment = get_config().enable_label_enrichment
        self.ai_client = None
        self.resolution_adjuster = None
        self.configure_ai_client(
            ai_client or AIClient(get_config().ai_backend_url, timeout=get_config().ai_request_timeout)
        )

    def configure_ai_client(self, ai_client):
        """Replace the AI backend collaborator (labels, upscale, sheet generation, regeneration)"""
        self.ai_client = ai_client
        self.resolution_adjuster = ResolutionAdjuster(ai_client, store)

    async def create_sheet(
        self,
        image_bytes: bytes,
        mime_type: str = OUTPUT_MIME_TYPE,
        rows: Optional[int] = None,
        cols: Optional[int] = None,
        generated: bool = False,
    ) -> str:
        """
        Slice an image into a new sheet and start the label enrichment in the background
        Args:
            image_bytes: The binary source image
            mime_type: The mime type of the source image
            rows: The number of grid rows (default from config)
            cols: The number of grid columns (default from config)
            generated: Whether the source image was generated by the AI backend

        Returns: The sheet id (UUID)

        """
        grid = GridShape(rows=rows or get_config().grid_rows, cols=cols or get_config().grid_cols)
        segments = await self.slicer.slice(image_bytes, grid.rows, grid.cols)
        cell = dimensions_of(segments[0].image_bytes)

        metadata = SheetMetadata(
            id=generate_id(),
            grid_shape=grid,
            cell_width=cell.width,
            cell_height=cell.height,
            generated=generated,
        )
        source = RawImage(sheet_id=metadata.id, category=RAW_IMAGE_SOURCE, mime_type=mime_type, image_bytes=image_bytes)
        store.insert_sheet(metadata, source, segments)
        logging.info("Created sheet %s with %s segments", metadata.id, grid.num_cells)

        if self.enable_label_enrichment:
            task = asyncio.create_task(self.enrich_labels(metadata.id, image_bytes, mime_type))
            store.set_label_task(metadata.id, task)
        else:
            store.finish_labeling(metadata.id, None)
        return metadata.id

    async def enrich_labels(self, sheet_id: str, image_bytes: bytes, mime_type: str = OUTPUT_MIME_TYPE) -> bool:
        """
        Request labels for all segments of a sheet. A failed request keeps the placeholder labels.
        Returns: False if the sheet was reset before the labels arrived
        """
        labels: Optional[List[str]] = None
        try:
            labels = await self.ai_client.generate_labels(image_bytes, mime_type)
        except RemoteOperationError:
            logging.warning("Label enrichment failed for sheet %s", sheet_id, exc_info=True)
        return store.finish_labeling(sheet_id, labels)

    async def generate_sheet(
        self,
        prompt: str,
        subject: Optional[RawImage] = None,
        style: Optional[RawImage] = None,
        rows: Optional[int] = None,
        cols: Optional[int] = None,
    ) -> str:
        if not prompt.strip():
            raise HTTPException(status_code=400, detail="The prompt must not be empty!")
        image_bytes = await self.ai_client.generate_sheet(
            prompt.strip(),
            subject_bytes=subject.image_bytes if subject else None,
            subject_mime_type=subject.mime_type if subject else None,
            style_bytes=style.image_bytes if style else None,
            style_mime_type=style.mime_type if style else None,
        )
        return await self.create_sheet(image_bytes, rows=rows, cols=cols, generated=True)

    async def adjust_resolution(self, sheet_id: str, segment_id: int, target_size: int) -> Optional[Segment]:
        if target_size > get_config().max_target_size:
            raise HTTPException(
                status_code=400,
                detail=f"target_size ({target_size}) exceeds the maximum of {get_config().max_target_size}.",
            )
        return await self.resolution_adjuster.adjust_resolution(sheet_id, segment_id, target_size)

    async def regenerate_segment(self, sheet_id: str, segment_id: int, instruction: str) -> Optional[Segment]:
        """
        Let the AI backend redraw a single segment according to an instruction.
        The previous image is kept if the backend fails.
        """
        if not instruction.strip():
            raise HTTPException(status_code=400, detail="The instruction must not be empty!")
        with store.mutation(sheet_id, segment_id) as segment:
            image_bytes = await self.ai_client.regenerate(segment.image_bytes, instruction.strip())
            try:
                png_bytes = await asyncio.get_running_loop().run_in_executor(None, reencode_bytes, image_bytes)
            except DecodeError as exc:
                raise RemoteOperationError("AI regeneration returned an undecodable image") from exc
            applied = store.apply_image(sheet_id, segment_id, png_bytes)
        return store.get_segment(sheet_id, segment_id) if applied else None

    @staticmethod
    def replace_segment_image(sheet_id: str, segment_id: int, image_bytes: bytes) -> Segment:
        with store.mutation(sheet_id, segment_id):
            png_bytes = reencode_bytes(image_bytes)
            store.apply_image(sheet_id, segment_id, png_bytes)
        return store.get_segment(sheet_id, segment_id)

    @staticmethod
    def update_label(sheet_id: str, segment_id: int, label: str) -> Segment:
        label = label.strip()
        if not label:
            raise HTTPException(status_code=400, detail="The label must not be empty!")
        return store.update_label(sheet_id, segment_id, label)

    @staticmethod
    def reset_sheet(sheet_id: str):
        store.delete_sheet(sheet_id)
        logging.info("Reset sheet %s", sheet_id)

    @staticmethod
    def get_sheet_metadata(sheet_id: str) -> dict:
        metadata: SheetMetadata = store.read_sheet_metadata(sheet_id)
        json_metadata = metadata.model_dump()
        json_metadata["segments"] = [
            {
                "id": seg.id,
                "label": seg.label,
                "processing": seg.processing,
                **dimensions_of(seg.image_bytes).model_dump(),
                "preview": seg.preview,
            }
            for seg in SheetManagementService.list_segments(sheet_id)
        ]
        return json_metadata

    @staticmethod
    def list_segments(sheet_id: str) -> List[Segment]:
        return store.get_segments(sheet_id)

    @staticmethod
    def get_source_image(sheet_id: str) -> RawImage:
        return store.read_source_image(sheet_id)

    @staticmethod
    def get_segment_image(sheet_id: str, segment_id: int) -> bytes:
        return store.get_segment(sheet_id, segment_id).image_bytes

    @staticmethod
    def get_segment_dimensions(sheet_id: str, segment_id: int) -> ImageDimensions:
        return dimensions_of(store.get_segment(sheet_id, segment_id).image_bytes)

    @staticmethod
    def export_zip(sheet_id: str) -> bytes:
        return segments_2_zip(SheetManagementService.list_segments(sheet_id))


sheet_service = SheetManagementService()
