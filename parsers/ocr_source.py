"""
OCR Source Module - Turn documents into page-grouped text fragments

Three sources feed the line reconstructor:
1. A hosted document-understanding response (JSON) converted to fragments
2. The PDF text layer, read word by word with pdfplumber
3. Image OCR (pdf2image + pytesseract) for scanned PDFs with no text layer

Results are cached by file hash so the same upload is never OCR'd twice.
"""

import os
import json
import hashlib
import logging
from typing import Dict, List, Optional

import pdfplumber

try:
    from pdf2image import convert_from_path
    import pytesseract
    OCR_AVAILABLE = True
except ImportError:
    OCR_AVAILABLE = False

from config import OCR_CACHE_DIR, USE_OCR_CACHE, TESSERACT_CMD, POPPLER_PATH, OCR_DPI
from .ocr_lines import sort_fragments_visually

logger = logging.getLogger(__name__)


class DocumentError(Exception):
    """A document that cannot be processed at all"""


class DocumentOpenError(DocumentError):
    """The document cannot be opened or decrypted"""


class EmptyDocumentError(DocumentError):
    """OCR produced zero text fragments"""


def make_fragment(text: str, page: int, start: int, end: int,
                  box: Dict, page_width: float, page_height: float) -> Dict:
    """
    Build a fragment from an axis-aligned box in absolute page units.

    Args:
        box: {'x0', 'x1', 'top', 'bottom'} with y growing downwards
        page_width: Used to normalize x
        page_height: Used to normalize y
    """
    vertices = {
        'top_left': {'x': box['x0'], 'y': box['top']},
        'top_right': {'x': box['x1'], 'y': box['top']},
        'bottom_left': {'x': box['x0'], 'y': box['bottom']},
        'bottom_right': {'x': box['x1'], 'y': box['bottom']},
    }
    normalized = {
        corner: {'x': point['x'] / page_width, 'y': point['y'] / page_height}
        for corner, point in vertices.items()
    }
    return {
        'text': text,
        'page': page,
        'indices': {'start': start, 'end': end},
        'bounding_poly': {'vertices': vertices, 'normalized_vertices': normalized}
    }


def count_fragments(pages: List[List[Dict]]) -> int:
    return sum(len(page) for page in pages)


# ============ HOSTED DOCUMENT RESPONSE ============

# Vertex order in the hosted response: top-left, top-right, bottom-right, bottom-left
_VERTEX_CORNERS = ('top_left', 'top_right', 'bottom_right', 'bottom_left')


def fragments_from_document_response(document: Dict, sort_visually: bool = True) -> List[List[Dict]]:
    """
    Convert a document-understanding JSON response into fragments per page.

    Each page's `lines` become fragments; their text is sliced out of the
    document's full text through the text anchor.

    Args:
        document: The response's `document` object (camelCase JSON)
        sort_visually: Sort fragments top-to-bottom, left-to-right per page

    Returns:
        Fragments per page
    """
    if 'document' in document and 'pages' not in document:
        document = document['document']

    text = document.get('text') or ''
    pages = []

    for page_index, page in enumerate(document.get('pages') or []):
        fragments = []
        for element in page.get('lines') or []:
            fragment = _fragment_from_layout(text, element.get('layout') or {}, page_index)
            if fragment:
                fragments.append(fragment)
        pages.append(sort_fragments_visually(fragments) if sort_visually else fragments)

    return pages


def _fragment_from_layout(text: str, layout: Dict, page: int) -> Optional[Dict]:
    """Build one fragment from a layout block, or None when it is incomplete"""
    segments = (layout.get('textAnchor') or {}).get('textSegments') or []
    poly = layout.get('boundingPoly') or {}
    vertices = poly.get('vertices') or []
    normalized = poly.get('normalizedVertices') or []

    if not segments or len(vertices) < 4 or len(normalized) < 4:
        return None

    # The first segment of a document omits startIndex
    start = int(segments[0].get('startIndex', 0))
    end = int(segments[0].get('endIndex', 0))

    return {
        'text': text[start:end],
        'page': page,
        'indices': {'start': start, 'end': end},
        'bounding_poly': {
            'vertices': _corners(vertices),
            'normalized_vertices': _corners(normalized),
        }
    }


def _corners(points: List[Dict]) -> Dict:
    return {
        corner: {'x': float(points[i].get('x', 0)), 'y': float(points[i].get('y', 0))}
        for i, corner in enumerate(_VERTEX_CORNERS)
    }


# ============ PDF SOURCES ============

def fragments_from_pdf(file_path: str, password: str = None) -> List[List[Dict]]:
    """
    Read word fragments from the PDF text layer.

    Raises:
        DocumentOpenError: The PDF cannot be opened or decrypted
    """
    pages = []
    try:
        with pdfplumber.open(file_path, password=password or '') as pdf:
            for page_index, page in enumerate(pdf.pages):
                words = page.extract_words()
                pages.append(_fragments_from_words(words, page_index, float(page.width), float(page.height)))
    except Exception as e:
        raise DocumentOpenError(f"Could not open {os.path.basename(file_path)}: {e}") from e

    return pages


def _fragments_from_words(words: List[Dict], page: int, width: float, height: float) -> List[Dict]:
    """Word boxes to fragments, with character offsets into the joined page text"""
    fragments = []
    offset = 0
    for word in words:
        text = word['text']
        fragments.append(make_fragment(text, page, offset, offset + len(text), word, width, height))
        offset += len(text) + 1
    return fragments


def fragments_from_images(file_path: str, password: str = None) -> List[List[Dict]]:
    """
    OCR a scanned PDF page by page with tesseract.

    Raises:
        DocumentOpenError: The PDF cannot be rendered
    """
    if not OCR_AVAILABLE:
        logger.warning("pdf2image/pytesseract not installed, image OCR skipped")
        return []

    if TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = TESSERACT_CMD

    try:
        images = convert_from_path(file_path, dpi=OCR_DPI, userpw=password,
                                   poppler_path=POPPLER_PATH)
    except Exception as e:
        raise DocumentOpenError(f"Could not render {os.path.basename(file_path)}: {e}") from e

    logger.info("Running OCR on %d page image(s)", len(images))
    pages = []
    for page_index, image in enumerate(images):
        data = pytesseract.image_to_data(image, output_type=pytesseract.Output.DICT)
        pages.append(_fragments_from_tesseract(data, page_index, float(image.width), float(image.height)))
    return pages


def _fragments_from_tesseract(data: Dict, page: int, width: float, height: float) -> List[Dict]:
    words = []
    for i, text in enumerate(data['text']):
        text = (text or '').strip()
        if not text or float(data['conf'][i]) < 0:
            continue
        left, top = data['left'][i], data['top'][i]
        words.append({
            'text': text,
            'x0': left,
            'x1': left + data['width'][i],
            'top': top,
            'bottom': top + data['height'][i],
        })
    return _fragments_from_words(words, page, width, height)


# ============ CACHED LOADER ============

class FragmentSource:
    """
    Load fragments for a document, using the OCR cache when possible.

    Usage:
        source = FragmentSource()
        pages = source.load("statement.pdf")
    """

    def __init__(self, cache_dir: str = OCR_CACHE_DIR, use_cache: bool = USE_OCR_CACHE):
        self.cache_dir = cache_dir
        self.use_cache = use_cache
        self.last_method = None  # 'cache', 'response', 'text_layer' or 'ocr'

    def load(self, file_path: str, password: str = None) -> List[List[Dict]]:
        """
        Fragments per page for a PDF or a saved document response (.json).

        Raises:
            FileNotFoundError: The file does not exist
            DocumentOpenError: The document cannot be opened
            EmptyDocumentError: No text fragments were found
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        file_hash = self._get_file_hash(file_path)
        pages = self._get_cached(file_hash)
        if pages is not None:
            self.last_method = 'cache'
        elif file_path.lower().endswith('.json'):
            pages = self._load_response(file_path)
            self.last_method = 'response'
        else:
            pages = fragments_from_pdf(file_path, password)
            self.last_method = 'text_layer'
            if count_fragments(pages) == 0:
                logger.info("No text layer in %s, using OCR", os.path.basename(file_path))
                pages = fragments_from_images(file_path, password)
                self.last_method = 'ocr'

        if count_fragments(pages) == 0:
            raise EmptyDocumentError(f"No text found in {os.path.basename(file_path)}")

        if self.last_method != 'cache':
            self._save_cache(file_hash, pages)

        logger.info("Loaded %d fragments on %d page(s) from %s (%s)",
                    count_fragments(pages), len(pages), os.path.basename(file_path), self.last_method)
        return pages

    def _load_response(self, file_path: str) -> List[List[Dict]]:
        with open(file_path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise DocumentOpenError(f"Invalid document response {os.path.basename(file_path)}: {e}") from e

        # Already page-grouped fragments (e.g. an exported cache entry)
        if isinstance(data, list):
            return data
        return fragments_from_document_response(data)

    def _get_file_hash(self, file_path: str) -> str:
        """Generate a hash for the file to use as cache key."""
        hasher = hashlib.md5()
        with open(file_path, 'rb') as f:
            for chunk in iter(lambda: f.read(65536), b''):
                hasher.update(chunk)
        return hasher.hexdigest()

    def _get_cached(self, file_hash: str) -> Optional[List[List[Dict]]]:
        if not self.use_cache:
            return None

        cache_file = os.path.join(self.cache_dir, f"{file_hash}.json")
        if not os.path.exists(cache_file):
            return None

        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                pages = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read OCR cache %s: %s", cache_file, e)
            return None

        if count_fragments(pages) == 0:
            return None
        logger.debug("Using cached OCR result %s", file_hash)
        return pages

    def _save_cache(self, file_hash: str, pages: List[List[Dict]]):
        if not self.use_cache:
            return

        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(os.path.join(self.cache_dir, f"{file_hash}.json"), 'w', encoding='utf-8') as f:
                json.dump(pages, f)
        except OSError as e:
            logger.warning("Failed to cache OCR result: %s", e)
