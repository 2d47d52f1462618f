import asyncio
from typing import List, Tuple

from PIL.Image import Image

from sticker_grid.models.grid_shape import GridShape
from sticker_grid.models.segment import Segment
from sticker_grid.utils.errors import InvalidImageError
from sticker_grid.utils.image_processing import (
    bytes2data_uri,
    bytes2pil,
    crop_cell,
    normalize_mode,
    pil2bytes,
)

DEFAULT_LABEL_PREFIX = "sticker_"


class GridSlicer:
    """Partitions a source image into rows x cols equally sized, independent segments"""

    def __init__(self, label_prefix: str = DEFAULT_LABEL_PREFIX):
        self.label_prefix = label_prefix

    async def slice(self, image_bytes: bytes, rows: int, cols: int) -> List[Segment]:
        """
        Slice a binary image into a grid of segments.
        Cell sizes are floored (width // cols, height // rows), so every cell has the same size and a remainder of
        less than one cell is left out at the right and bottom edge.
        Args:
            image_bytes: The binary source image, it is never modified
            rows: The number of grid rows
            cols: The number of grid columns

        Returns: rows * cols segments sorted by id (reading order: left to right, top to bottom)

        Raises:
            DecodeError: The source is not a decodable image
            InvalidImageError: A cell would be zero pixels wide or high
            EncodeError: A cell could not be encoded, no segments are returned

        """
        grid = GridShape(rows=rows, cols=cols)
        loop = asyncio.get_running_loop()
        image = await loop.run_in_executor(None, bytes2pil, image_bytes)
        image = normalize_mode(image)

        width, height = image.size
        cell_width, cell_height = self.cell_size(width, height, grid)

        cells = []
        for segment_id in range(grid.num_cells):
            y, x = divmod(segment_id, grid.cols)
            box = (x * cell_width, y * cell_height, (x + 1) * cell_width, (y + 1) * cell_height)
            cells.append((segment_id, crop_cell(image, box)))

        # cells are encoded concurrently and may finish in any order
        pending = [loop.run_in_executor(None, self._encode_cell, segment_id, cell) for segment_id, cell in cells]
        segments = []
        for finished in asyncio.as_completed(pending):
            segments.append(await finished)
        segments.sort(key=lambda s: s.id)
        return segments

    @staticmethod
    def cell_size(width: int, height: int, grid: GridShape) -> Tuple[int, int]:
        cell_width = width // grid.cols
        cell_height = height // grid.rows
        if cell_width == 0 or cell_height == 0:
            raise InvalidImageError(
                f"Image of size {width}x{height} is too small for a {grid.rows}x{grid.cols} grid"
            )
        return cell_width, cell_height

    def _encode_cell(self, segment_id: int, cell: Image) -> Segment:
        cell_bytes = pil2bytes(cell)
        return Segment(
            id=segment_id,
            image_bytes=cell_bytes,
            preview=bytes2data_uri(cell_bytes),
            label=f"{self.label_prefix}{segment_id + 1}",
            processing=True,
        )
