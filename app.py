"""
Bank Statement Coding Assistant - Flask JSON API

Endpoints:
    GET  /api/status  - Health check
    POST /api/parse   - Parse one uploaded statement or ledger
    POST /api/code    - Code uploaded statements against an uploaded ledger

Uploads are written to temporary files for the parsers and removed
afterwards; nothing is stored.
"""

import os
import logging
import tempfile
from datetime import datetime
from typing import List

from flask import Flask, request, jsonify
from werkzeug.utils import secure_filename

from config import (FLASK_HOST, FLASK_PORT, FLASK_DEBUG, MAX_CONTENT_LENGTH, MAX_WORKERS,
                    SUPPORTED_DOCUMENT_EXTENSIONS, SUPPORTED_LEDGER_SPREADSHEET_EXTENSIONS,
                    setup_logging)
from parsers import UniversalParser, BankStatement, GeneralLedger, DocumentError
from processors import code_statements

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = set(SUPPORTED_DOCUMENT_EXTENSIONS + SUPPORTED_LEDGER_SPREADSHEET_EXTENSIONS)

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH


def allowed_file(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in ALLOWED_EXTENSIONS


def error_response(message: str, status: int):
    return jsonify({'status': 'error', 'message': message}), status


def parse_upload(file, password: str = None):
    """
    Parse one uploaded file through a temporary copy.

    Raises:
        ValueError: Unsupported file type
        DocumentError: The document cannot be opened or has no text
    """
    filename = secure_filename(file.filename)
    if not filename or not allowed_file(filename):
        raise ValueError(f"Unsupported file: {file.filename}. Supported: {sorted(ALLOWED_EXTENSIONS)}")

    with tempfile.NamedTemporaryFile(delete=False, suffix=os.path.splitext(filename)[1]) as tmp_file:
        file.save(tmp_file.name)
        tmp_filepath = tmp_file.name

    try:
        document = UniversalParser().parse(tmp_filepath, password=password)
    finally:
        os.unlink(tmp_filepath)

    if document is not None:
        document.attach_file({'name': filename})
    return document


def _uploaded(field: str) -> List:
    return [f for f in request.files.getlist(field) if f and f.filename]


# ============ ROUTES ============

@app.route('/api/status')
def api_status():
    """API health check"""
    return jsonify({
        'status': 'ok',
        'supported_extensions': sorted(ALLOWED_EXTENSIONS),
        'timestamp': datetime.now().isoformat()
    })


@app.route('/api/parse', methods=['POST'])
def api_parse():
    """Parse a bank statement or general ledger (multipart field 'file')"""
    files = _uploaded('file')
    if not files:
        return error_response('No file uploaded', 400)

    try:
        document = parse_upload(files[0], password=request.form.get('password'))
    except ValueError as e:
        return error_response(str(e), 400)
    except DocumentError as e:
        logger.warning("Could not read %s: %s", files[0].filename, e)
        return error_response(str(e), 422)

    if document is None:
        return error_response('Document is neither a known bank statement nor a general ledger', 422)

    if isinstance(document, BankStatement):
        return jsonify({
            'status': 'success',
            'kind': 'bank_statement',
            'statement': document.to_dict(),
            'reconciliation': document.reconcile(),
        })
    return jsonify({
        'status': 'success',
        'kind': 'general_ledger',
        'ledger': document.to_dict(),
        'reconciliation': document.reconcile(),
    })


@app.route('/api/code', methods=['POST'])
def api_code():
    """Code statements against a ledger (multipart fields 'ledger' and 'statement')"""
    ledger_files = _uploaded('ledger')
    statement_files = _uploaded('statement')
    if not ledger_files or not statement_files:
        return error_response('A ledger file and at least one statement file are required', 400)

    password = request.form.get('password')
    try:
        ledger = parse_upload(ledger_files[0])
        if not isinstance(ledger, GeneralLedger):
            return error_response(f"{ledger_files[0].filename} is not a recognised general ledger", 422)

        statements = []
        for file in statement_files:
            statement = parse_upload(file, password=password)
            if not isinstance(statement, BankStatement):
                return error_response(f"{file.filename} is not a recognised bank statement", 422)
            statements.append(statement)
    except ValueError as e:
        return error_response(str(e), 400)
    except DocumentError as e:
        return error_response(str(e), 422)

    coders = code_statements(statements, ledger, max_workers=MAX_WORKERS)
    return jsonify({
        'status': 'success',
        'ledger': {'format': ledger.format, 'company': ledger.company, 'accounts': len(ledger.accounts)},
        'results': [coder.to_dict() for coder in coders],
    })


@app.errorhandler(413)
def file_too_large(e):
    return error_response(f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB', 413)


if __name__ == '__main__':
    setup_logging()
    logger.info("Starting API on http://%s:%s", FLASK_HOST, FLASK_PORT)
    app.run(debug=FLASK_DEBUG, host=FLASK_HOST, port=FLASK_PORT)
