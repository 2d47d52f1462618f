from pydantic import BaseModel


class Segment(BaseModel):
    """One cell of a sliced sheet. image_bytes and preview always describe the same pixels."""

    id: int
    image_bytes: bytes
    preview: str
    label: str
    processing: bool = True
