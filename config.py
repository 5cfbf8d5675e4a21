"""
Bank Statement Coding Assistant - Configuration

Every tunable constant lives here. Each one can be overridden with an
environment variable of the same name.
"""

import os
import logging

# Base paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get('DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOG_DIR = os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'logs'))
OCR_CACHE_DIR = os.environ.get('OCR_CACHE_DIR', os.path.join(DATA_DIR, 'ocr_cache'))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == 'true'


# Sentinels for fields the extractors could not find
UNKNOWN = 'Unknown'
NOT_FOUND = -1

# Date format used for every date leaving the parsers
DATE_FORMAT = "%m/%d/%Y"
DATE_FORMATS_TO_TRY = [
    "%m/%d/%Y", "%m-%d-%Y", "%Y-%m-%d", "%d/%m/%Y",
    "%m/%d/%y", "%d-%m-%Y", "%Y/%m/%d", "%b %d, %Y",
    "%B %d, %Y", "%d %b %Y", "%d %B %Y"
]

# Line reconstruction (normalized y difference between fragments on one line)
LINE_Y_THRESHOLD = _env_float('LINE_Y_THRESHOLD', 0.01)
LINE_REPAIR_WINDOW = _env_int('LINE_REPAIR_WINDOW', 3)

# Matching thresholds
RATIO_CUTOFF = _env_float('RATIO_CUTOFF', 0.35)
WORD_RATIO_CUTOFF = _env_float('WORD_RATIO_CUTOFF', 0.85)
WORD_MATCH_RATIO = _env_float('WORD_MATCH_RATIO', 0.35)
ACCOUNT_SUFFIX_RATIO = _env_float('ACCOUNT_SUFFIX_RATIO', 0.95)
DESCRIPTION_MAX_LENGTH = _env_int('DESCRIPTION_MAX_LENGTH', 16)

# Catch-all ledger account
SUSPENSE_ACCOUNT_NAME = os.environ.get('SUSPENSE_ACCOUNT_NAME', 'SUSPENSE')
SUSPENSE_ACCOUNT_NUMBER = os.environ.get('SUSPENSE_ACCOUNT_NUMBER', '3130')

# Money comparisons (printed totals vs computed sums)
RECONCILIATION_TOLERANCE = _env_float('RECONCILIATION_TOLERANCE', 0.005)

# Supported file extensions
SUPPORTED_DOCUMENT_EXTENSIONS = ['.pdf', '.json']
SUPPORTED_LEDGER_SPREADSHEET_EXTENSIONS = ['.xlsx', '.xls', '.csv']

# OCR settings
USE_OCR_CACHE = _env_bool('USE_OCR_CACHE', True)
TESSERACT_CMD = os.environ.get('TESSERACT_CMD')
POPPLER_PATH = os.environ.get('POPPLER_PATH')
OCR_DPI = _env_int('OCR_DPI', 300)

# Concurrent statement/ledger pairings
MAX_WORKERS = _env_int('MAX_WORKERS', 4)

# Flask settings
FLASK_HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
FLASK_PORT = _env_int('PORT', 8590)
FLASK_DEBUG = _env_bool('FLASK_DEBUG', False)
MAX_CONTENT_LENGTH = 50 * 1024 * 1024

# Logging settings
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
LOG_FILE = os.path.join(LOG_DIR, 'bsca.log')
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str = None, log_file: str = LOG_FILE):
    """
    Configure the root logger once for the CLI and the web API.

    Args:
        level: Logging level name, defaults to LOG_LEVEL
        log_file: File to append to, or None for console only
    """
    root = logging.getLogger()
    root.setLevel(level or LOG_LEVEL)
    if root.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
