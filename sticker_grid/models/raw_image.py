from pydantic import BaseModel

RAW_IMAGE_SOURCE = 0
RAW_IMAGE_SUBJECT_REFERENCE = 1
RAW_IMAGE_STYLE_REFERENCE = 2


class RawImage(BaseModel):
    """Model for binary images as uploaded or generated (e.g. png, jpeg)"""

    sheet_id: str
    category: int
    mime_type: str
    image_bytes: bytes
