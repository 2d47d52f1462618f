from pydantic import BaseModel

from sticker_grid.models.grid_shape import GridShape


class SheetMetadata(BaseModel):
    id: str
    grid_shape: GridShape
    cell_width: int
    cell_height: int
    generated: bool
    labels_enriched: bool = False
