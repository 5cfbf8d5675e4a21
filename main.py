"""
Bank Statement Coding Assistant - Main Entry Point

Command Line Interface for coding bank statements against a general ledger
"""

import os
import sys
import json
import logging
import argparse
from typing import Dict, List

from config import MAX_WORKERS, NOT_FOUND, LINE_REPAIR_WINDOW, setup_logging
from parsers import UniversalParser, BankStatement, GeneralLedger, DocumentError
from processors import Coder, code_statements

logger = logging.getLogger(__name__)


def print_banner():
    """Print application banner"""
    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                     BANK STATEMENT CODING ASSISTANT                           ║
║                                                                               ║
║  Reads bank statements and a general ledger, suggests an account per line    ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """)


def load_ledger(file_path: str, parser: UniversalParser) -> GeneralLedger:
    """
    Raises:
        ValueError: The file is not a recognised general ledger
    """
    ledger = parser.parse(file_path)
    if not isinstance(ledger, GeneralLedger):
        raise ValueError(f"{os.path.basename(file_path)} is not a recognised general ledger")
    return ledger


def load_statements(file_paths: List[str], parser: UniversalParser, password: str = None) -> List[BankStatement]:
    """
    Raises:
        ValueError: A file is not a recognised bank statement
    """
    statements = []
    for file_path in file_paths:
        statement = parser.parse(file_path, password=password)
        if not isinstance(statement, BankStatement):
            raise ValueError(f"{os.path.basename(file_path)} is not a recognised bank statement")
        statements.append(statement)
    return statements


def _format_check(report: Dict) -> str:
    if not report or report.get('matches') is None:
        return 'n/a'
    return '✓' if report['matches'] else f"✗ (off by ${report['difference']:,.2f})"


def print_statement_summary(coder: Coder):
    statement = coder.statement
    summary = coder.get_summary()
    reconciliation = statement.reconcile()
    period = statement.period or {}
    name = (statement.file or {}).get('name', '')

    print(f"\n{'='*70}")
    print(f"{name}  {statement.bank}")
    print(f"{'='*70}")
    print(f"Period: {period.get('start')} - {period.get('end')}")
    print(f"Account: {(statement.account or {}).get('number')}")

    begin = statement.summary['balance']['begin']
    if begin != NOT_FOUND:
        print(f"Beginning Balance: ${begin:,.2f}")

    deposits, withdrawals = summary['deposits'], summary['withdrawals']
    print(f"Deposits: {deposits['count']} totalling ${deposits['total']:,.2f}  "
          f"{_format_check(reconciliation.get('deposits'))}")
    print(f"Withdrawals: {withdrawals['count']} totalling ${abs(withdrawals['total']):,.2f}  "
          f"{_format_check(reconciliation.get('withdrawals'))}")
    print(f"Ending Balance: {_format_check(reconciliation.get('balance'))}")
    print(f"Coded to suspense: {deposits['suspense'] + withdrawals['suspense']}")


def run(ledger_path: str, statement_paths: List[str], output: str = None,
        password: str = None, workers: int = MAX_WORKERS, repair_window: int = 0) -> List[Coder]:
    """
    Parse, code and report.

    Args:
        ledger_path: General ledger (PDF, saved document response or spreadsheet)
        statement_paths: One or more bank statements
        output: JSON file for the coding results
        password: Password for encrypted statement PDFs
        workers: Concurrent statement codings
        repair_window: Recent lines eligible for out-of-order fragment repair (0 disables)

    Returns:
        One Coder per statement, in input order
    """
    parser = UniversalParser(repair_window=repair_window)

    print(f"\n[1/3] Parsing general ledger: {os.path.basename(ledger_path)}")
    ledger = load_ledger(ledger_path, parser)
    print(f"      ✓ {len(ledger.accounts)} accounts, {ledger.get_entry_count()} entries")

    print(f"\n[2/3] Parsing {len(statement_paths)} bank statement(s)...")
    statements = load_statements(statement_paths, parser, password=password)
    for statement in statements:
        print(f"      ✓ {statement.file['name']}: {statement.bank}, "
              f"{len(statement.deposits)} deposits, {len(statement.withdrawals)} withdrawals")

    print("\n[3/3] Coding transactions...")
    coders = code_statements(statements, ledger, max_workers=workers)

    for coder in coders:
        print_statement_summary(coder)

    if output:
        output_dir = os.path.dirname(os.path.abspath(output))
        os.makedirs(output_dir, exist_ok=True)
        with open(output, 'w', encoding='utf-8') as f:
            json.dump({
                'ledger': ledger.to_dict(),
                'results': [coder.to_dict() for coder in coders],
            }, f, indent=2)
        print(f"\nResults written to {output}")

    return coders


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description='Bank Statement Coding Assistant - Suggest ledger accounts for bank transactions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py ledger.pdf statement.pdf
  python main.py ledger.xlsx jan.pdf feb.pdf --output coding.json
  python main.py ledger.pdf statement.pdf --password secret --verbose
        """
    )

    parser.add_argument('ledger', nargs='?', help='General ledger file (PDF, JSON response, Excel, or CSV)')
    parser.add_argument('statements', nargs='*', help='Bank statement files (PDF or JSON response)')
    parser.add_argument('--output', '-o', help='JSON file for the coding results')
    parser.add_argument('--password', help='Password for encrypted statement PDFs')
    parser.add_argument('--workers', type=int, default=MAX_WORKERS,
                        help=f'Statements coded concurrently (default: {MAX_WORKERS})')
    parser.add_argument('--repair-lines', action='store_true',
                        help='Re-attach out-of-order OCR fragments to recent lines')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--web', '-w', action='store_true', help='Launch the JSON API')

    args = parser.parse_args()

    setup_logging('DEBUG' if args.verbose else None)
    print_banner()

    if args.web:
        from config import FLASK_HOST, FLASK_PORT, FLASK_DEBUG
        print(f"Starting API on http://{FLASK_HOST}:{FLASK_PORT}")
        from app import app
        app.run(debug=FLASK_DEBUG, host=FLASK_HOST, port=FLASK_PORT)
        return

    if not args.ledger or not args.statements:
        parser.print_help()
        print("\n✗ Error: Please provide a ledger and at least one bank statement, or use --web")
        sys.exit(1)

    try:
        run(args.ledger, args.statements, output=args.output,
            password=args.password, workers=args.workers,
            repair_window=LINE_REPAIR_WINDOW if args.repair_lines else 0)
    except FileNotFoundError as e:
        print(f"\n✗ Error: {e}")
        sys.exit(1)
    except (DocumentError, ValueError) as e:
        logger.error("Processing failed: %s", e)
        print(f"\n✗ Error: {e}")
        sys.exit(1)

    print("\n✓ Coding completed successfully!")


if __name__ == "__main__":
    main()
