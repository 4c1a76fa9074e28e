from typing import Optional
from PIL import Image, UnidentifiedImageError
import io
import logging
import re

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
]

# Declared types that say nothing about the content; the extension decides
GENERIC_MIME_TYPES = ["application/octet-stream", "binary/octet-stream"]

ALLOWED_EXTENSIONS_RE =re.compile(r"\.(jpg|jpeg|png|gif|webp|pdf)$", re.IGNORECASE)

UNSUPPORTED_FILE_MESSAGE = "File type not supported. Please upload images (JPG, PNG, GIF) or PDF"

# Pillow format name -> MIME type
_PIL_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

_EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
}


class DocumentParser:
    """Validate timetable uploads and prepare them for the vision model"""

    @staticmethod
    def is_supported(filename: Optional[str], mime_type: Optional[str]) -> bool:
        """Accept a known MIME type, or a generic one with an image/PDF extension"""
        mime_type = (mime_type or "").lower()
        if mime_type in ALLOWED_MIME_TYPES:
            return True
        if mime_type and mime_type not in GENERIC_MIME_TYPES:
            return False
        return bool(filename and ALLOWED_EXTENSIONS_RE.search(filename))

    @staticmethod
    def resolve_mime_type(file_content: bytes, filename: Optional[str], declared: Optional[str]) -> str:
        """
        Work out the real MIME type of an upload.

        Browsers sometimes send application/octet-stream; the content itself is
        checked first, then the file extension, then whatever was declared.
        """
        if file_content.startswith(b"%PDF"):
            return "application/pdf"

        try:
            with Image.open(io.BytesIO(file_content)) as image:
                detected = _PIL_FORMATS.get(image.format or "")
            if detected:
                return detected
        except (UnidentifiedImageError, OSError):
            pass

        if filename and "." in filename:
            ext = filename.rsplit(".", 1)[-1].lower()
            if ext in _EXTENSION_MIME_TYPES:
                return _EXTENSION_MIME_TYPES[ext]

        declared = (declared or "application/octet-stream").lower()
        return "image/jpeg" if declared == "image/jpg" else declared

    @staticmethod
    def extract_text_from_pdf(file_content: bytes) -> str:
        """Extract the text layer of a PDF (empty for scanned PDFs)"""
        try:
            from PyPDF2 import PdfReader
            pdf_reader = PdfReader(io.BytesIO(file_content))
            text = ""
            for page in pdf_reader.pages:
                text += (page.extract_text() or "") + "\n"
            return text.strip()
        except Exception as e:
            logger.warning(f"Error extracting PDF text: {e}")
            return ""
