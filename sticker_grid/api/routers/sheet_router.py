import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response

from sticker_grid.models.app_config import get_config
from sticker_grid.models.raw_image import (
    RAW_IMAGE_STYLE_REFERENCE,
    RAW_IMAGE_SUBJECT_REFERENCE,
    RawImage,
)
from sticker_grid.services.sheet_management import sheet_service
from sticker_grid.utils.errors import StickerGridError
from sticker_grid.utils.request_validation import validate_request_uuid

router = APIRouter()


@router.get(
    "/sheet/presets",
    name="get_presets",
    summary="Get the grid shape and the resolution presets offered for segments.",
)
async def get_presets() -> JSONResponse:
    return JSONResponse(
        content={
            "rows": get_config().grid_rows,
            "cols": get_config().grid_cols,
            "resolution_presets": get_config().resolution_presets,
        }
    )


@router.post(
    "/sheet/",
    name="post_sheet",
    summary="Slice an uploaded sticker sheet into segments. Labels are requested from the AI backend in the "
    "background.",
)
async def post_sheet(
    file: UploadFile = File(..., description="The sticker sheet that shall be sliced."),
    rows: Optional[int] = Form(None, ge=1, le=16, description="The number of grid rows (default from config)."),
    cols: Optional[int] = Form(None, ge=1, le=16, description="The number of grid columns (default from config)."),
) -> JSONResponse:
    image_bytes = await file.read()
    try:
        sheet_id = await sheet_service.create_sheet(
            image_bytes, mime_type=file.content_type or "image/png", rows=rows, cols=cols
        )
        return JSONResponse(content={"msg": "Sheet created!", "sheet_id": sheet_id}, headers={"sheet_id": sheet_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.post(
    "/sheet/generate",
    name="generate_sheet",
    summary="Generate a sticker sheet from a text prompt (and optional reference images) and slice it.",
)
async def generate_sheet(
    prompt: str = Form(..., description="A description of the stickers that shall be generated."),
    subject: Optional[UploadFile] = File(None, description="A reference image for the character/object design."),
    style: Optional[UploadFile] = File(None, description="A reference image for the artistic style."),
) -> JSONResponse:
    try:
        subject_ref = None
        if subject is not None:
            subject_ref = RawImage(
                sheet_id="",
                category=RAW_IMAGE_SUBJECT_REFERENCE,
                mime_type=subject.content_type or "image/png",
                image_bytes=await subject.read(),
            )
        style_ref = None
        if style is not None:
            style_ref = RawImage(
                sheet_id="",
                category=RAW_IMAGE_STYLE_REFERENCE,
                mime_type=style.content_type or "image/png",
                image_bytes=await style.read(),
            )
        sheet_id = await sheet_service.generate_sheet(prompt, subject=subject_ref, style=style_ref)
        return JSONResponse(content={"msg": "Sheet generated!", "sheet_id": sheet_id}, headers={"sheet_id": sheet_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.get(
    "/sheet/{sheet_id}",
    name="get_sheet",
    summary="Get the metadata of a sheet and all of its segments (label, state, size and preview).",
)
async def get_sheet(sheet_id: str) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        metadata = sheet_service.get_sheet_metadata(s_id)
        return JSONResponse(content=metadata, headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.get("/sheet/{sheet_id}/source", name="get_sheet_source", summary="Get the uncut source image of a sheet.")
async def get_sheet_source(sheet_id: str) -> Response:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        source = sheet_service.get_source_image(s_id)
        return Response(content=source.image_bytes, media_type=source.mime_type, headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.get(
    "/sheet/{sheet_id}/zip",
    name="get_sheet_zip",
    summary="Download all segments of a sheet as a zip archive of png files named after their labels.",
)
async def get_sheet_zip(sheet_id: str) -> Response:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        zip_bytes = sheet_service.export_zip(s_id)
        return Response(
            content=zip_bytes,
            media_type="application/zip",
            headers={
                "sheet_id": s_id,
                "Content-Disposition": f'attachment; filename="{get_config().zip_filename}"',
            },
        )
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc


@router.delete(
    "/sheet/{sheet_id}",
    name="delete_sheet",
    summary="Discard a sheet and all of its segments. Results of pending AI requests for it are dropped.",
)
async def delete_sheet(sheet_id: str) -> JSONResponse:
    try:
        s_id = validate_request_uuid(sheet_id, "sheet")
        sheet_service.reset_sheet(s_id)
        return JSONResponse(content={"msg": "Sheet deleted!"}, headers={"sheet_id": s_id})
    except HTTPException:
        raise
    except StickerGridError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except BaseException as exc:
        logging.error("", exc_info=True)
        raise HTTPException(status_code=500, detail="An unknown server error occurred") from exc
