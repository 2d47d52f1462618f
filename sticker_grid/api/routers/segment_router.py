import logging

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response

from sticker_grid.models.segment import Segment
from sticker_grid.services.sheet_management import sheet_service
from sticker_grid.utils.errors import StickerGridError
from sticker_grid.utils.image_processing import OUTPUT_MIME_TYPE, dimensions_of
from sticker_grid.utils.request_validation import validate_request_uuid

router = APIRouter()


def _segment_content(segment: Segment) -> dict:
    return {
        "id": segment.id,
        "label": segment.label,
        "processing": segment.processing,
        **dimensions_of(segment.image_bytes).model_dump(),
    }


def _discarded_content(segment_id: int) -> dict:
    return {"msg": "Sheet was reset, the result has been discarded.", "id": segment_id}


@router.get(
    "/sheet/{sheet_id}/segment/{segment_id}",
    name="get_segment_image",
    summary="Get the current image of a segment as PNG.",
)
async def get_segment_image(sheet_id: str, segment_id: int) -> Response:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        image_bytes = sheet_service.get_segment_image(s_id, segment_id)
        return Response(content=image_bytes, media_type=OUTPUT_MIME_TYPE, headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.get(
    "/sheet/{sheet_id}/segment/{segment_id}/dimensions",
    name="get_segment_dimensions",
    summary="Get the pixel width and height of a segment image.",
)
async def get_segment_dimensions(sheet_id: str, segment_id: int) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        dimensions = sheet_service.get_segment_dimensions(s_id, segment_id)
        return JSONResponse(content=dimensions.model_dump(), headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.put(
    "/sheet/{sheet_id}/segment/{segment_id}/label",
    name="put_segment_label",
    summary="Rename a segment. The label is used as file name in the zip download.",
)
async def put_segment_label(
    sheet_id: str,
    segment_id: int,
    label: str = Form(..., max_length=128, description="The new label of the segment."),
) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        segment = sheet_service.update_label(s_id, segment_id, label)
        return JSONResponse(content=_segment_content(segment), headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.post(
    "/sheet/{sheet_id}/segment/{segment_id}/resolution",
    name="post_segment_resolution",
    summary="Rescale a segment to target_size x target_size. Sizes up to the current width are resampled "
    "locally, larger sizes are upscaled by the AI backend.",
)
async def post_segment_resolution(
    sheet_id: str,
    segment_id: int,
    target_size: int = Form(..., ge=1, description="The edge length of the resulting square image."),
) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        segment = await sheet_service.adjust_resolution(s_id, segment_id, target_size)
        if segment is None:
            return JSONResponse(content=_discarded_content(segment_id), status_code=409)
        return JSONResponse(content=_segment_content(segment), headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.post(
    "/sheet/{sheet_id}/segment/{segment_id}/regenerate",
    name="post_segment_regenerate",
    summary="Let the AI backend redraw a segment according to an instruction.",
)
async def post_segment_regenerate(
    sheet_id: str,
    segment_id: int,
    instruction: str = Form(..., description="How the sticker shall be changed."),
) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        segment = await sheet_service.regenerate_segment(s_id, segment_id, instruction)
        if segment is None:
            return JSONResponse(content=_discarded_content(segment_id), status_code=409)
        return JSONResponse(content=_segment_content(segment), headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.post(
    "/sheet/{sheet_id}/segment/{segment_id}/image",
    name="post_segment_image",
    summary="Replace the image of a segment with an uploaded image.",
)
async def post_segment_image(
    sheet_id: str,
    segment_id: int,
    file: UploadFile = File(..., description="The image that shall replace the segment."),
) -> JSONResponse:
    try:
        input_image_bytes = await file.read()
        s_id = validate_request_uuid(sheet_id, "sheet")
        segment = sheet_service.replace_segment_image(s_id, segment_id, input_image_bytes)
        return JSONResponse(content=_segment_content(segment), headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc
