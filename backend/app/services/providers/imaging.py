"""
Image and PDF preparation shared by the provider adapters.
"""

import io
import logging
from typing import List

import PyPDF2
from PyPDF2.errors import PdfReadError
from PIL import Image, ImageEnhance
from pdf2image import convert_from_bytes

logger = logging.getLogger(__name__)

# Below this many characters a PDF text layer is treated as missing
MIN_PDF_TEXT_LENGTH = 50


def load_image(image_bytes: bytes) -> Image.Image:
    return Image.open(io.BytesIO(image_bytes))


def preprocess_image(image: Image.Image) -> Image.Image:
    """
    Preprocess image to improve OCR accuracy.

    Converts to grayscale and raises contrast, which helps with faded thermal
    receipts.
    """
    if image.mode != 'RGB':
        image = image.convert('RGB')
    image = image.convert('L')
    return ImageEnhance.Contrast(image).enhance(2.0)


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def pdf_to_images(pdf_data: bytes, first_page_only: bool = False) -> List[Image.Image]:
    """Rasterise PDF pages (requires poppler)."""
    if first_page_only:
        return convert_from_bytes(pdf_data, first_page=1, last_page=1)
    return convert_from_bytes(pdf_data)


def pdf_first_page_png(pdf_data: bytes) -> bytes:
    """
    First PDF page as PNG bytes, for backends that only accept images.

    Raises:
        ValueError: PDF has no pages
    """
    images = pdf_to_images(pdf_data, first_page_only=True)
    if not images:
        raise ValueError("PDF has no pages")
    return image_to_png_bytes(images[0])


def extract_pdf_text_layer(pdf_data: bytes) -> str:
    """
    Extract text directly from a text-based PDF.

    Returns an empty string for image-only or unreadable PDFs; callers fall
    back to OCR in that case.
    """
    try:
        reader = PyPDF2.PdfReader(io.BytesIO(pdf_data))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except PdfReadError:
        logger.warning("Could not read PDF text layer", exc_info=True)
        return ""

    if len(text.strip()) < MIN_PDF_TEXT_LENGTH:
        logger.debug("PDF appears to be image-based", extra={"chars": len(text.strip())})
        return ""
    return text.strip()
