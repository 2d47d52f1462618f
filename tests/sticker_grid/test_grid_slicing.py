import numpy as np
import pytest
from image_factory import grid_png

from sticker_grid.models.grid_shape import GridShape
from sticker_grid.services.grid_slicing import GridSlicer
from sticker_grid.utils.errors import DecodeError, InvalidImageError
from sticker_grid.utils.image_processing import bytes2pil, dimensions_of, np2pil, pil2bytes, pil2np


@pytest.mark.asyncio
async def test_slice_4x4_sheet():
    segments = await GridSlicer().slice(grid_png(4, 4, 256, 256), 4, 4)

    assert len(segments) == 16
    assert [s.id for s in segments] == list(range(16))
    assert [s.label for s in segments] == [f"sticker_{i}" for i in range(1, 17)]
    assert all(s.processing for s in segments)
    for seg in segments:
        dims = dimensions_of(seg.image_bytes)
        assert (dims.width, dims.height) == (256, 256)
        # every cell carries the marker of its own grid position
        pixels = pil2np(bytes2pil(seg.image_bytes))
        assert np.all(pixels[:, :, 0] == seg.id * 10 + 5)


@pytest.mark.asyncio
async def test_slice_top_left_and_bottom_right():
    segments = await GridSlicer().slice(grid_png(4, 4, 256, 256), 4, 4)
    assert pil2np(bytes2pil(segments[0].image_bytes))[0, 0, 0] == 5
    assert pil2np(bytes2pil(segments[15].image_bytes))[255, 255, 0] == 155


@pytest.mark.asyncio
async def test_slice_preview_matches_payload():
    segments = await GridSlicer().slice(grid_png(2, 2, 16, 16), 2, 2)
    for seg in segments:
        assert seg.preview.startswith("data:image/png;base64,")
        assert bytes2pil(seg.image_bytes).size == (16, 16)


@pytest.mark.asyncio
async def test_slice_non_square_grid():
    segments = await GridSlicer().slice(grid_png(3, 5, 30, 20), 3, 5)

    assert len(segments) == 15
    assert [s.id for s in segments] == list(range(15))
    for seg in segments:
        dims = dimensions_of(seg.image_bytes)
        assert (dims.width, dims.height) == (30, 20)
        assert pil2np(bytes2pil(seg.image_bytes))[10, 15, 0] == seg.id * 10 + 5


@pytest.mark.asyncio
async def test_slice_floors_cell_size():
    image_bytes = pil2bytes(np2pil(np.ones((10, 11, 3), dtype="uint8") * 90))
    segments = await GridSlicer().slice(image_bytes, 3, 3)

    assert len(segments) == 9
    assert {bytes2pil(s.image_bytes).size for s in segments} == {(3, 3)}


@pytest.mark.asyncio
async def test_slice_too_small_image():
    image_bytes = pil2bytes(np2pil(np.ones((3, 3, 3), dtype="uint8") * 90))
    with pytest.raises(InvalidImageError):
        await GridSlicer().slice(image_bytes, 4, 4)


@pytest.mark.asyncio
async def test_slice_undecodable_image():
    with pytest.raises(DecodeError):
        await GridSlicer().slice(b"definitely not an image", 4, 4)


@pytest.mark.asyncio
async def test_slice_keeps_transparency():
    array = np.ones((8, 8, 4), dtype="uint8") * 255
    array[:4, :4, 3] = 0
    segments = await GridSlicer().slice(pil2bytes(np2pil(array)), 2, 2)

    top_left = bytes2pil(segments[0].image_bytes)
    bottom_right = bytes2pil(segments[3].image_bytes)
    assert top_left.mode == "RGBA"
    assert np.all(pil2np(top_left)[:, :, 3] == 0)
    assert np.all(pil2np(bottom_right)[:, :, 3] == 255)


@pytest.mark.asyncio
async def test_slice_custom_label_prefix():
    segments = await GridSlicer(label_prefix="cat_").slice(grid_png(1, 2, 8, 8), 1, 2)
    assert [s.label for s in segments] == ["cat_1", "cat_2"]


@pytest.mark.asyncio
async def test_slice_invalid_grid_shape():
    with pytest.raises(ValueError):
        await GridSlicer().slice(grid_png(1, 1, 8, 8), 0, 4)


def test_grid_shape_num_cells():
    assert GridShape(rows=3, cols=5).num_cells == 15
