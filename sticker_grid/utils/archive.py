import io
import re
import zipfile
from typing import List

from sticker_grid.models.segment import Segment

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_一-龥]")


def safe_filename(label: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", label) or "_"


def segments_2_zip(segments: List[Segment]) -> bytes:
    """
    Pack the segment images into a zip archive, one png per segment named after its label
    Args:
        segments: The segments in the order they shall appear in the archive

    Returns: The zip archive

    """
    used_names = set()
    zip_byte_arr = io.BytesIO()
    with zipfile.ZipFile(zip_byte_arr, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        for seg in segments:
            base_name = safe_filename(seg.label)
            name = base_name
            n = 1
            # equal labels must not overwrite each other
            while name in used_names:
                n += 1
                name = f"{base_name}_{n}"
            used_names.add(name)
            archive.writestr(f"{name}.png", seg.image_bytes)
    return zip_byte_arr.getvalue()
