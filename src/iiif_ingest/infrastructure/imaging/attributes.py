from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from iiif_ingest.core.errors import ManifestExtractionError
from iiif_ingest.domain.models.manifest import PageImage

logger = logging.getLogger(__name__)


class ImageAttributeExtractor:
    """Reads filename, pixel size and MIME type of a converted page.

    Only the header is read; pixel data is never decoded. Pillow's
    decompression-bomb limit still applies, so a page above
    ``Image.MAX_IMAGE_PIXELS`` fails extraction like an unreadable one.
    """

    def extract(self, path: Path) -> PageImage:
        try:
            with Image.open(path) as image:
                width, height = image.size
                mime_type = image.get_format_mimetype() or Image.MIME.get(image.format or "", "")
        except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as exc:
            logger.error("cannot extract image attributes from %s (%s)", path, exc)
            raise ManifestExtractionError(f"cannot extract image attributes from {path.name} ({exc})") from exc

        return PageImage(
            id=path.stem,
            filename=path.name,
            width=str(width),
            height=str(height),
            format=mime_type,
        )
