import uuid

from fastapi import HTTPException

from sticker_grid.services.segment_store import store


def validate_request_uuid(uuid_string: str, id_label: str = "sheet") -> str:
    stripped_uuid = str(uuid_string).strip()
    if not uuid_format_is_valid(stripped_uuid):
        raise HTTPException(
            status_code=400,
            detail=f"{id_label} id ({uuid_string}) has to be of format UUID4!",
        )
    if not store.sheet_exists(stripped_uuid):
        raise HTTPException(status_code=404, detail=f"{id_label} id ({uuid_string}) does not exist.")
    return stripped_uuid


def uuid_format_is_valid(uuid_string: str) -> bool:
    try:
        uuid.UUID(uuid_string)
        return True
    except ValueError:
        return False


def generate_id() -> str:
    return str(uuid.uuid4())
