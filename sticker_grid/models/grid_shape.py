from pydantic import BaseModel, Field


class GridShape(BaseModel):
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)

    @property
    def num_cells(self) -> int:
        return self.rows * self.cols
