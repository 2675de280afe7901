"""
Text extraction for uploaded documents.

Scanned images go through Tesseract. PDFs use their embedded text layer when
they have one and are rasterised page by page otherwise. Word files are read
directly.
"""
import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path

import pypdf
import pytesseract
from docx import Document as DocxDocument
from pdf2image import convert_from_path
from PIL import Image

from scholarhub.errors import UpstreamFailure

logger = logging.getLogger("scholarhub.ocr")

MIME_KINDS = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}
SUFFIX_KINDS = {".pdf": "pdf", ".doc": "doc", ".docx": "docx"}


class OcrWorker:
    """Holds every resource one recognition run opens."""

    def __init__(self, lang: str, timeout: int, dpi: int):
        self.lang = lang
        self.timeout = timeout
        self.dpi = dpi
        self._images: list[Image.Image] = []
        self._scratch: tempfile.TemporaryDirectory | None = None

    def open_image(self, path: Path) -> Image.Image:
        image = Image.open(path)
        self._images.append(image)
        return image

    def rasterize_pdf(self, path: Path) -> list[Image.Image]:
        if self._scratch is None:
            self._scratch = tempfile.TemporaryDirectory(prefix="scholarhub-ocr-")
        pages = convert_from_path(str(path), dpi=self.dpi, output_folder=self._scratch.name)
        self._images.extend(pages)
        return pages

    def recognize(self, image: Image.Image) -> str:
        return pytesseract.image_to_string(image, lang=self.lang, timeout=self.timeout)

    def release(self):
        for image in self._images:
            image.close()
        self._images.clear()
        if self._scratch is not None:
            self._scratch.cleanup()
            self._scratch = None


@contextmanager
def ocr_worker(lang: str = "eng", timeout: int = 0, dpi: int = 300):
    worker = OcrWorker(lang, timeout, dpi)
    try:
        yield worker
    finally:
        worker.release()


class TextExtractor:
    def __init__(self, lang: str = "eng", timeout_seconds: int = 60, dpi: int = 300,
                 tesseract_cmd: str | None = None):
        self.lang = lang
        self.timeout_seconds = timeout_seconds
        self.dpi = dpi
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def extract_text(self, file_path: str | Path, mime_type: str | None = None) -> str:
        """Return the recognised text, or "" when nothing was recognised.

        The declared `mime_type` picks the reader; the file suffix is only
        consulted when no MIME type is given.
        """
        path = Path(file_path)
        kind = MIME_KINDS.get(mime_type) if mime_type else SUFFIX_KINDS.get(path.suffix.lower())
        try:
            if kind == "docx":
                return self._read_docx(path)
            if kind == "doc":
                logger.info("Legacy Word file %s has no extractable text", path.name)
                return ""
            with ocr_worker(self.lang, self.timeout_seconds, self.dpi) as worker:
                if kind == "pdf":
                    return self._read_pdf(path, worker)
                return worker.recognize(worker.open_image(path)).strip()
        except Exception as exc:
            raise UpstreamFailure("Failed to read document", detail=f"extract_text {path.name}: {exc}") from exc

    def _read_pdf(self, path: Path, worker: OcrWorker) -> str:
        reader = pypdf.PdfReader(str(path))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
        if text.strip():
            return text.strip()
        # No text layer: scanned PDF
        pages = worker.rasterize_pdf(path)
        return "\n".join(worker.recognize(page) for page in pages).strip()

    @staticmethod
    def _read_docx(path: Path) -> str:
        doc = DocxDocument(str(path))
        return "\n".join(p.text for p in doc.paragraphs if p.text.strip())
