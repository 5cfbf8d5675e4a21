"""
AccountingCS General Ledger format

Layout of the report body (after the "Period End Balance" column header):

    1000 Cash - Operating                       12,500.00
    01/05/23  104  PR  STAPLES                     45.00   12,455.00
    01/09/23  105      WESTERN UNION              120.00   12,335.00
    Totals for 1000                                165.00   12,335.00
    ...
    Distribution count: 412

Accounts are read by a single reducer pass over line texts. Entries are
buffered and only committed to an account once a "Totals for {number}"
line names it, so a misordered account header cannot pull entries into
the wrong account.
"""

import re
import logging
from datetime import datetime
from functools import reduce
from typing import Dict, List, Optional, Tuple

from config import UNKNOWN, DATE_FORMAT
from ..ocr_lines import line_text
from ..banks.base import AMOUNT_END_REGEX, parse_amount, parse_long_date

logger = logging.getLogger(__name__)

TITLE = 'General Ledger'
TITLE_LINES = 5
TABLE_START = 'Period End Balance'

PERIOD_REGEX = re.compile(r'(\w+ \d{1,2}, \d{4}) ?- ?(\w+ \d{1,2}, \d{4})')
ACCOUNT_REGEX = re.compile(r'^(\d+(?:\.\d+)?)\s+(\S.*)$')
ACCOUNT_BALANCE_REGEX = re.compile(r' \(?[\d,]+\.\d{2} ?\)?$')
ENTRY_DATE_REGEX = re.compile(r'^(\d{2}/\d{2}/\d{2})(?=\s|$)')
REFERENCE_REGEX = re.compile(r'^(?:(?:[\d.]+|PR|SS|MD|JV|RU)\s+){0,2}')
TOTALS_REGEX = re.compile(r'^Totals\s+(?:(?!for).)*for\s+(\d+(?:\.\d+)?)\b(.*)$')
DISTRIBUTION_REGEX = re.compile(r'Distribution count\s*:?\s*([\d,]+)', re.IGNORECASE)
PAGE_LINE_REGEX = re.compile(r'^(?:Page \d+|\d+ of \d+$)', re.IGNORECASE)

# A split "Totals" line is completed by at most this many following lines
TOTALS_CONTINUATION_LINES = 2

INVALID_ACCOUNT_NUMBERS = ['0.00', UNKNOWN]


def initial_state() -> Dict:
    """Fresh accumulator for one reducer pass"""
    return {
        'accounts': {},
        'pending_entries': [],
        'pending_account': None,
        'held': {},
        'inside_table': False,
        'awaiting_totals': None,
        'distribution_count': None,
    }


def reduce_line(state: Dict, text: str) -> Dict:
    """
    Fold one line of ledger text into the accumulator.

    Args:
        state: Accumulator from initial_state() or a previous call
        text: Joined text of one reconstructed line

    Returns:
        The same accumulator
    """
    text = text.strip()
    if not text:
        return state

    match = DISTRIBUTION_REGEX.search(text)
    if match:
        state['distribution_count'] = int(match.group(1).replace(',', ''))
        return state

    if TABLE_START in text:
        state['inside_table'] = True
        return state
    if not state['inside_table'] or PAGE_LINE_REGEX.match(text):
        return state

    if state['awaiting_totals'] is not None:
        combined, remaining = state['awaiting_totals']
        state['awaiting_totals'] = None
        if _is_totals_continuation(combined, text):
            combined = f"{combined} {text}"
            if not _close_totals(state, combined) and remaining > 1:
                state['awaiting_totals'] = (combined, remaining - 1)
            return state

    if text.startswith('Totals'):
        if not _close_totals(state, text):
            state['awaiting_totals'] = (text, TOTALS_CONTINUATION_LINES)
        return state

    match = ENTRY_DATE_REGEX.match(text)
    if match:
        entry = parse_entry(match.group(1), text[match.end():])
        if entry:
            state['pending_entries'].append(entry)
        return state

    match = ACCOUNT_REGEX.match(text)
    # Names may start with digits ("401K Contributions") but not be only amounts
    if match and split_trailing_amounts(match.group(2))[0]:
        _open_account(state, match.group(1), match.group(2))
    return state


def _open_account(state: Dict, number: str, name: str):
    beginning_balance = None
    balance = ACCOUNT_BALANCE_REGEX.search(name)
    if balance:
        beginning_balance = parse_amount(balance.group(0))
        name = name[:balance.start()]
    name = name.strip() or UNKNOWN

    account = state['accounts'].get(number)
    if account is None:
        account = new_account(number, name, beginning_balance)
        state['accounts'][number] = account
    else:
        # Duplicate headers (page breaks) merge into the first one
        if account['name'] == UNKNOWN:
            account['name'] = name
        if account['beginning_balance'] is None:
            account['beginning_balance'] = beginning_balance

    state['pending_account'] = number
    held = state['held'].pop(number, None)
    if held:
        logger.debug("Account %s confirmed, attaching %d held entries", number, len(held['entries']))
        _commit(account, held['entries'], held['amounts'])


def _is_totals_continuation(combined: str, text: str) -> bool:
    return text.startswith('for') or (combined.endswith('for') and text[:1].isdigit())


def _close_totals(state: Dict, text: str) -> bool:
    """Handle a complete "Totals for N" line; False when the number is not there yet"""
    match = TOTALS_REGEX.match(text)
    if not match:
        return False

    number = match.group(1)
    amounts = split_trailing_amounts(match.group(2))[1]
    entries, state['pending_entries'] = state['pending_entries'], []
    pending_account, state['pending_account'] = state['pending_account'], None

    account = state['accounts'].get(number)
    if account is not None:
        if pending_account != number:
            logger.debug("Totals for %s closed while %s was open", number, pending_account)
        _commit(account, entries, amounts)
    else:
        held = state['held'].setdefault(number, {'entries': [], 'amounts': []})
        held['entries'].extend(entries)
        held['amounts'] = amounts
        logger.debug("Holding %d entries for unconfirmed account %s", len(entries), number)
    return True


def _commit(account: Dict, entries: List[Dict], amounts: List[float]):
    account['entries'].extend(entries)
    if amounts:
        account['amount_total'] = amounts[0]
        if len(amounts) > 1:
            account['ending_balance'] = amounts[-1]


def split_trailing_amounts(text: str) -> Tuple[str, List[float]]:
    """'STAPLES 45.00 1,045.00' -> ('STAPLES', [45.0, 1045.0])"""
    amounts = []
    rest = text.strip()
    match = AMOUNT_END_REGEX.search(rest)
    while match:
        amounts.insert(0, parse_amount(match.group(1)))
        rest = rest[:match.start()].strip()
        match = AMOUNT_END_REGEX.search(rest)
    return rest, amounts


def parse_entry(date_text: str, rest: str) -> Optional[Dict]:
    """
    Build an entry from a dated ledger line.

    Reference and journal codes before the description are dropped. The
    first trailing amount is the entry amount and a second one the running
    balance.
    """
    try:
        date = datetime.strptime(date_text, '%m/%d/%y').strftime(DATE_FORMAT)
    except ValueError:
        return None

    body = REFERENCE_REGEX.sub('', rest.strip(), count=1)
    body, amounts = split_trailing_amounts(body)
    if not body:
        return None

    entry = {'date': date, 'description': body}
    if amounts:
        entry['amount'] = amounts[0]
    return entry


def finalize(state: Dict) -> List[Dict]:
    """
    Clean up the accumulated accounts.

    Drops invalid accounts ("0.00", "Unknown", "Net Profit") and sorts by
    number, numerically when both numbers parse.
    """
    for number, held in state['held'].items():
        logger.warning("Discarding %d entries held for account %s (no account header found)",
                       len(held['entries']), number)
    if state['pending_entries']:
        logger.warning("Discarding %d entries with no closing totals line", len(state['pending_entries']))

    accounts = [
        a for a in state['accounts'].values()
        if a['number'] not in INVALID_ACCOUNT_NUMBERS
        and a['name'] != UNKNOWN
        and 'Net Profit' not in a['name']
    ]
    return sorted(accounts, key=account_sort_key)


def account_sort_key(account: Dict):
    try:
        return (0, float(account['number']), '')
    except ValueError:
        return (1, 0.0, account['number'])


def new_account(number: str, name: str, beginning_balance: float = None) -> Dict:
    return {
        'number': number,
        'name': name,
        'beginning_balance': beginning_balance,
        'ending_balance': None,
        'amount_total': None,
        'entries': [],
    }


def parse_accounts(texts: List[str]) -> Dict:
    """
    Run the reducer over line texts.

    Returns:
        {'accounts': [...], 'distribution_count': int or None}
    """
    state = reduce(reduce_line, texts, initial_state())
    return {
        'accounts': finalize(state),
        'distribution_count': state['distribution_count'],
    }


class AccountingCSFormat:
    """General Ledger reports exported from AccountingCS"""

    key = 'accountingcs'
    name = 'AccountingCS'

    def _title_line(self, lines: List[List[Dict]]) -> Optional[str]:
        for page_lines in lines:
            for line in page_lines[:TITLE_LINES]:
                text = line_text(line)
                if TITLE in text:
                    return text
        return None

    def identify(self, lines: List[List[Dict]]) -> bool:
        return self._title_line(lines) is not None

    def extract_company(self, lines: List[List[Dict]]) -> Dict:
        title = self._title_line(lines)
        if title:
            name = title.split(TITLE)[0].strip()
            if name:
                return {'name': name}
        return {'name': UNKNOWN}

    def extract_period(self, lines: List[List[Dict]]) -> Dict:
        texts = [line_text(line) for line in (lines[0] if lines else [])[:TITLE_LINES * 2]]
        title = self._title_line(lines)
        if title:
            texts.append(title.split(TITLE, 1)[-1])

        for text in texts:
            match = PERIOD_REGEX.search(text)
            if not match:
                continue
            start, end = parse_long_date(match.group(1)), parse_long_date(match.group(2))
            if start and end:
                return {'start': start, 'end': end}
        return {'start': UNKNOWN, 'end': UNKNOWN}

    def extract_accounts(self, lines: List[List[Dict]]) -> Dict:
        texts = [line_text(line) for page_lines in lines for line in page_lines]
        result = parse_accounts(texts)
        logger.info("Parsed %d ledger accounts", len(result['accounts']))
        return result
