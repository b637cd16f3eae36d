"""
Screenshot normalization and pairwise image comparison.

All functions take and return encoded image bytes (PNG out) and never touch a
live session. Pixels are compared as straight (non-premultiplied) 8-bit RGBA.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

from PIL import Image, ImageChops, ImageMath, ImageStat, UnidentifiedImageError

from .errors import ImageDecodeError

MAX_MSE = 255.0 * 255.0
DIFF_THRESHOLD = 10
DIFF_COLOR = (255, 0, 0, 255)


def decode_image(data: bytes, label: str = "image") -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(action="decode_image", reason=f"failed to decode {label}: {exc}") from exc
    return img.convert("RGBA")


def encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def scale_nearest(src: Image.Image, width: int, height: int) -> Image.Image:
    """Nearest-neighbor resample mapping dst (x, y) to src (int(x*rx), int(y*ry))."""
    src_w, src_h = src.size
    x_ratio = src_w / width
    y_ratio = src_h / height
    xs = [int(x * x_ratio) for x in range(width)]
    ys = [int(y * y_ratio) for y in range(height)]
    px = src.load()
    dst = Image.new("RGBA", (width, height))
    dst.putdata([px[sx, sy] for sy in ys for sx in xs])
    return dst


def normalize_pair(img1: Image.Image, img2: Image.Image) -> tuple[Image.Image, Image.Image]:
    """Bring both images to one size by scaling whichever is wider or taller onto the other."""
    (w1, h1), (w2, h2) = img1.size, img2.size
    if (w1, h1) == (w2, h2):
        return img1, img2
    if w1 > w2 or h1 > h2:
        return scale_nearest(img1, w2, h2), img2
    return img1, scale_nearest(img2, w1, h1)


def _decode_pair(img1_bytes: bytes, img2_bytes: bytes) -> tuple[Image.Image, Image.Image]:
    img1 = decode_image(img1_bytes, "first image")
    img2 = decode_image(img2_bytes, "second image")
    return normalize_pair(img1, img2)


def _exceeds_mask(diff: Image.Image, threshold: int) -> Image.Image:
    """L-mode mask, 255 where any channel of `diff` is above threshold."""
    mask = None
    for band in diff.split():
        hit = band.point(lambda v: 255 if v > threshold else 0)
        mask = hit if mask is None else ImageChops.lighter(mask, hit)
    return mask


def compare_images(img1_bytes: bytes, img2_bytes: bytes) -> float:
    """Similarity in [0, 1]: 1 - min(MSE / 255^2, 1) over all four channels."""
    img1, img2 = _decode_pair(img1_bytes, img2_bytes)
    width, height = img1.size
    samples = width * height * 4
    if samples == 0:
        return 1.0
    diff = ImageChops.difference(img1, img2)
    total = sum(ImageStat.Stat(diff).sum2)
    mse = total / samples
    return 1.0 - min(mse / MAX_MSE, 1.0)


def pixel_difference_count(img1_bytes: bytes, img2_bytes: bytes, threshold: int = 0) -> int:
    """Number of pixels where any channel differs by more than `threshold`."""
    img1, img2 = _decode_pair(img1_bytes, img2_bytes)
    if img1.size[0] == 0 or img1.size[1] == 0:
        return 0
    mask = _exceeds_mask(ImageChops.difference(img1, img2), threshold)
    return mask.histogram()[255]


def create_diff_image(img1_bytes: bytes, img2_bytes: bytes, path: str | Path | None = None) -> bytes:
    """Red where pixels differ by more than DIFF_THRESHOLD, grayscale of the first image elsewhere.

    The PNG is always returned; it is also written to `path` when one is given.
    """
    img1, img2 = _decode_pair(img1_bytes, img2_bytes)
    mask = _exceeds_mask(ImageChops.difference(img1, img2), DIFF_THRESHOLD)
    r, g, b, a = img1.split()
    # Integer division on "I" operands: floor of the channel mean, not weighted luma.
    gray = ImageMath.lambda_eval(
        lambda args: args["convert"]((args["r"] + args["g"] + args["b"]) / 3, "L"), r=r, g=g, b=b
    )
    base = Image.merge("RGBA", (gray, gray, gray, a))
    data = encode_png(Image.composite(Image.new("RGBA", img1.size, DIFF_COLOR), base, mask))
    if path:
        Path(path).write_bytes(data)
    return data


def crop_top_left(data: bytes, width: int, height: int) -> bytes:
    """Crop to (width, height) from the origin, clamped to the image.

    Returns the input unchanged when the requested box covers the whole image.
    """
    if width <= 0 or height <= 0:
        raise ImageDecodeError(action="crop_image", reason=f"crop size must be positive, got {width}x{height}")
    img = decode_image(data, "screenshot")
    img_w, img_h = img.size
    if width >= img_w and height >= img_h:
        return data
    box = (0, 0, min(width, img_w), min(height, img_h))
    try:
        return encode_png(img.crop(box))
    except (ValueError, OSError, SystemError) as exc:
        raise ImageDecodeError(action="crop_image", reason=f"failed to crop screenshot to {box}: {exc}") from exc
