"""
Universal Parser Module - Auto-detect file type and document kind

PDFs and saved document responses go through OCR and line reconstruction,
then are classified: a bank statement when any issuer layout identifies
them, otherwise a general ledger when a ledger format does. Spreadsheets
always go to the ledger import path.
"""

import os
import logging
from typing import Dict, Optional, Union

from config import (SUPPORTED_DOCUMENT_EXTENSIONS, SUPPORTED_LEDGER_SPREADSHEET_EXTENSIONS,
                    LINE_Y_THRESHOLD)
from .ocr_lines import group_fragments_into_lines
from .ocr_source import FragmentSource
from .bank_statement import BankStatement
from .general_ledger import GeneralLedger

logger = logging.getLogger(__name__)

Document = Union[BankStatement, GeneralLedger]


class UniversalParser:
    """Universal parser that auto-detects and routes to appropriate parser"""

    SUPPORTED_EXTENSIONS = {ext: 'document' for ext in SUPPORTED_DOCUMENT_EXTENSIONS}
    SUPPORTED_EXTENSIONS.update({ext: 'spreadsheet' for ext in SUPPORTED_LEDGER_SPREADSHEET_EXTENSIONS})

    def __init__(self, source: FragmentSource = None, threshold: float = LINE_Y_THRESHOLD,
                 repair_window: int = 0):
        """
        Args:
            source: OCR fragment loader (cached by default)
            threshold: Line grouping tolerance
            repair_window: Recent lines eligible for out-of-order repair (0 disables)
        """
        self.source = source or FragmentSource()
        self.threshold = threshold
        self.repair_window = repair_window
        self.file_type = None
        self.last_result = None

    def parse(self, file_path: str, password: str = None) -> Optional[Document]:
        """
        Parse a file into a BankStatement or GeneralLedger.

        Args:
            file_path: PDF, saved document response (.json) or ledger spreadsheet
            password: Password for encrypted PDFs

        Returns:
            The parsed document, or None when it is neither a known statement nor ledger

        Raises:
            FileNotFoundError: The file does not exist
            ValueError: Unsupported extension
            DocumentError: The document cannot be opened or has no text
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        ext = os.path.splitext(file_path)[1].lower()

        if ext not in self.SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported file format: {ext}. Supported: {list(self.SUPPORTED_EXTENSIONS.keys())}")

        self.file_type = self.SUPPORTED_EXTENSIONS[ext]
        file_ref = {'name': os.path.basename(file_path)}

        if self.file_type == 'spreadsheet':
            ledger = GeneralLedger.from_spreadsheet(file_path)
            self.last_result = ledger if ledger.accounts else None
            return self.last_result

        pages = self.source.load(file_path, password=password)
        result = self.classify(pages)
        if result is None:
            logger.warning("%s is neither a known bank statement nor a general ledger", file_ref['name'])
        else:
            result.attach_file(file_ref)
        self.last_result = result
        return result

    def classify(self, pages) -> Optional[Document]:
        """Statement first, then ledger, from fragments per page"""
        lines = group_fragments_into_lines(pages, threshold=self.threshold, repair_window=self.repair_window)

        statement = BankStatement(lines)
        if statement.is_identified():
            return statement

        ledger = GeneralLedger(lines)
        if ledger.is_identified():
            return ledger
        return None

    def get_summary(self) -> Dict:
        """Get parsing summary for the last parsed file"""
        result = self.last_result
        if result is None:
            return {'status': 'no_document', 'file_type': self.file_type}

        if isinstance(result, BankStatement):
            return {
                'status': 'success',
                'file_type': self.file_type,
                'kind': 'bank_statement',
                'bank': result.bank,
                'deposits': len(result.deposits),
                'withdrawals': len(result.withdrawals),
                'ocr_method': self.source.last_method,
            }
        return {
            'status': 'success',
            'file_type': self.file_type,
            'kind': 'general_ledger',
            'format': result.format,
            'accounts': len(result.accounts),
            'entries': result.get_entry_count(),
        }


def parse_document(file_path: str, password: str = None) -> Optional[Document]:
    """Convenience function to parse one file with the default parser"""
    return UniversalParser().parse(file_path, password=password)
