"""
Parsers Package - Turn OCR output and ledger exports into structured documents

Architecture:
1. FragmentSource (ocr_source.py) - PDF text layer, image OCR or saved responses, cached
2. group_fragments_into_lines (ocr_lines.py) - Rebuild visual lines
3. BankStatement (bank_statement.py) - Issuer layouts from banks/
4. GeneralLedger (general_ledger.py) - Report formats from ledger_formats/ or spreadsheets
5. UniversalParser (universal_parser.py) - Routes a file to the right model

To add a new bank:
1. Subclass banks.base.BankLayout with the issuer's anchor, regions and headings
2. Register it with banks.register_layout()
"""

from .ocr_lines import group_fragments_into_lines
from .ocr_source import (FragmentSource, DocumentError, DocumentOpenError, EmptyDocumentError,
                         fragments_from_document_response)
from .bank_statement import BankStatement
from .general_ledger import GeneralLedger
from .excel_parser import ExcelParser
from .universal_parser import UniversalParser, parse_document

__all__ = ['group_fragments_into_lines', 'FragmentSource', 'DocumentError', 'DocumentOpenError',
           'EmptyDocumentError', 'fragments_from_document_response', 'BankStatement',
           'GeneralLedger', 'ExcelParser', 'UniversalParser', 'parse_document']
