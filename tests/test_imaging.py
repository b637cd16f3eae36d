from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from remote_browser.errors import ImageDecodeError
from remote_browser.imaging import (
    compare_images,
    create_diff_image,
    crop_top_left,
    pixel_difference_count,
    scale_nearest,
)


def _png(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _solid(size: tuple[int, int], color: tuple[int, int, int, int]) -> bytes:
    return _png(Image.new("RGBA", size, color))


def _open(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data)).convert("RGBA")


def test_identical_images_score_one() -> None:
    img = _solid((8, 6), (12, 200, 40, 255))
    assert compare_images(img, img) == 1.0
    assert pixel_difference_count(img, img) == 0


def test_opposite_images_score_zero() -> None:
    black = _solid((4, 4), (0, 0, 0, 0))
    white = _solid((4, 4), (255, 255, 255, 255))
    assert compare_images(black, white) == 0.0
    assert pixel_difference_count(black, white) == 16


def test_score_is_symmetric_and_bounded() -> None:
    a = _solid((5, 5), (10, 20, 30, 255))
    b = _solid((5, 5), (60, 20, 30, 255))
    s = compare_images(a, b)
    assert 0.0 < s < 1.0
    assert s == compare_images(b, a)


def test_pixel_count_threshold() -> None:
    base = Image.new("RGBA", (4, 4), (100, 100, 100, 255))
    changed = base.copy()
    changed.putpixel((0, 0), (105, 100, 100, 255))
    changed.putpixel((1, 0), (100, 130, 100, 255))
    changed.putpixel((2, 0), (100, 100, 100, 200))

    a, b = _png(base), _png(changed)
    assert pixel_difference_count(a, b) == 3
    assert pixel_difference_count(a, b, threshold=5) == 2
    assert pixel_difference_count(a, b, threshold=30) == 1
    assert pixel_difference_count(a, b, threshold=255) == 0


def test_mismatched_sizes_are_normalized() -> None:
    small = _solid((2, 2), (9, 9, 9, 255))
    large = _solid((6, 4), (9, 9, 9, 255))
    assert compare_images(small, large) == 1.0
    assert compare_images(large, small) == 1.0
    assert pixel_difference_count(small, large) == 0

    diff = _open(create_diff_image(large, small))
    assert diff.size == (2, 2)


def test_scale_nearest_samples_by_floor() -> None:
    src = Image.new("RGBA", (4, 1))
    colors = [(0, 0, 0, 255), (50, 0, 0, 255), (100, 0, 0, 255), (150, 0, 0, 255)]
    for x, color in enumerate(colors):
        src.putpixel((x, 0), color)

    down = scale_nearest(src, 2, 1)
    assert [down.getpixel((x, 0)) for x in range(2)] == [colors[0], colors[2]]

    up = scale_nearest(src, 8, 2)
    assert [up.getpixel((x, 1)) for x in range(8)] == [c for c in colors for _ in range(2)]


def test_diff_image_marks_changes_red_and_keeps_gray_elsewhere(tmp_path: Path) -> None:
    first = Image.new("RGBA", (3, 1), (30, 60, 90, 200))
    second = first.copy()
    second.putpixel((1, 0), (30, 60, 200, 200))
    second.putpixel((2, 0), (35, 60, 90, 200))  # within the diff threshold

    out = tmp_path / "diff.png"
    data = create_diff_image(_png(first), _png(second), out)

    diff = _open(data)
    assert diff.getpixel((0, 0)) == (60, 60, 60, 200)
    assert diff.getpixel((1, 0)) == (255, 0, 0, 255)
    assert diff.getpixel((2, 0)) == (60, 60, 60, 200)
    assert out.read_bytes() == data


def test_diff_image_without_path_writes_nothing(tmp_path: Path) -> None:
    img = _solid((2, 2), (1, 2, 3, 255))
    create_diff_image(img, img)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("fn", [compare_images, pixel_difference_count, create_diff_image])
def test_undecodable_input_raises(fn) -> None:
    good = _solid((2, 2), (0, 0, 0, 255))
    with pytest.raises(ImageDecodeError) as exc:
        fn(good, b"definitely not a png")
    assert "second image" in exc.value.reason
    with pytest.raises(ImageDecodeError):
        fn(b"", good)


def test_crop_top_left() -> None:
    src = Image.new("RGBA", (10, 8), (0, 0, 255, 255))
    src.putpixel((0, 0), (255, 255, 0, 255))
    cropped = _open(crop_top_left(_png(src), 4, 3))
    assert cropped.size == (4, 3)
    assert cropped.getpixel((0, 0)) == (255, 255, 0, 255)


def test_crop_clamps_to_image() -> None:
    data = _solid((10, 8), (0, 0, 0, 255))
    assert _open(crop_top_left(data, 20, 4)).size == (10, 4)
    assert crop_top_left(data, 10, 8) == data
    assert crop_top_left(data, 100, 100) == data


@pytest.mark.parametrize("size", [(0, 5), (5, 0), (-3, 5)])
def test_crop_to_empty_box_raises(size: tuple[int, int]) -> None:
    with pytest.raises(ImageDecodeError):
        crop_top_left(_solid((10, 8), (1, 2, 3, 255)), *size)


def test_diff_gray_is_channel_mean_not_luma() -> None:
    first = _solid((2, 1), (0, 0, 255, 255))
    assert _open(create_diff_image(first, first)).getpixel((0, 0)) == (85, 85, 85, 255)
