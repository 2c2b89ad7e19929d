import io
import logging
from pathlib import Path
from urllib.parse import urlparse

import httpx
from PIL import Image, ImageDraw

from core.settings import settings

DEFAULT_DOWNLOAD_NAME = "generated-landscape-design.jpg"


def slider_percentage(x: float, width: float) -> float:
    """Pointer position over the comparison, as a percentage clamped to [0, 100]."""
    if width <= 0:
        return 50.0
    return max(0.0, min(100.0, x / width * 100.0))


def load_image(source: str, transport: httpx.BaseTransport | None = None) -> Image.Image:
    """Open an image from an http(s) URL or a local path."""
    if source.startswith(("http://", "https://")):
        with httpx.Client(timeout=settings.REQUEST_TIMEOUT, transport=transport, follow_redirects=True) as client:
            response = client.get(source)
            response.raise_for_status()
            return Image.open(io.BytesIO(response.content)).convert("RGB")
    return Image.open(source).convert("RGB")


def compose_before_after(before: Image.Image, after: Image.Image, position: float = 50.0) -> Image.Image:
    """
    Side-by-side reveal: the left `position` percent shows `before`, the rest `after`.

    `after` is resized to the size of `before` so both line up.
    """
    position = max(0.0, min(100.0, position))
    before = before.convert("RGB")
    after = after.convert("RGB")
    if after.size != before.size:
        after = after.resize(before.size, Image.LANCZOS)

    width, height = before.size
    split = round(width * position / 100.0)

    canvas = after.copy()
    if split > 0:
        canvas.paste(before.crop((0, 0, split, height)), (0, 0))

    draw = ImageDraw.Draw(canvas)
    line_x = min(max(split, 1), width - 1)
    draw.line([(line_x, 0), (line_x, height)], fill=(255, 255, 255), width=max(2, width // 300))
    return canvas


def download_filename(image_url: str) -> str:
    name = Path(urlparse(image_url).path).name
    return name or DEFAULT_DOWNLOAD_NAME


def save_for_download(image_url: str, dest_dir: str | Path, transport: httpx.BaseTransport | None = None) -> Path:
    """Fetch the generated image and write it to dest_dir for the download button."""
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / download_filename(image_url)

    if image_url.startswith(("http://", "https://")):
        with httpx.Client(timeout=settings.REQUEST_TIMEOUT, transport=transport, follow_redirects=True) as client:
            response = client.get(image_url)
            response.raise_for_status()
            target.write_bytes(response.content)
    else:
        target.write_bytes(Path(image_url).read_bytes())

    logging.info(f"💾 Design saved for download: {target}")
    return target
