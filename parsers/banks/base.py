"""
Bank Layout Base - Shared positional and lexical extraction for statement layouts

Each issuer is a BankLayout subclass that mostly sets class attributes
(anchor literal, regions, section headings, totals literals, noise patterns)
and overrides an extract_* method only where its template needs it.

All extract_* methods take the page-grouped lines produced by
ocr_lines.group_fragments_into_lines and never raise for missing data:
strings fall back to UNKNOWN and numbers to NOT_FOUND.
"""

import re
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from config import UNKNOWN, NOT_FOUND, DATE_FORMAT
from ..ocr_lines import first_page, line_text, lines_within_region, texts_within_region

logger = logging.getLogger(__name__)

Region = Tuple[Tuple[float, float], Tuple[float, float]]

AMOUNT_PATTERN = r'\(?-?\$?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?-?'
AMOUNT_REGEX = re.compile(AMOUNT_PATTERN)
AMOUNT_END_REGEX = re.compile(r'\s*(' + AMOUNT_PATTERN + r')$')
LONG_DATE_REGEX = re.compile(r'([A-Z][a-z]+\.? \d{1,2}, \d{4})')
CONTINUED_REGEX = re.compile(r'\s*\(continued\)$', re.IGNORECASE)

# Lines that never belong to a transaction, whatever the issuer
IGNORED_LINE_PATTERNS = [
    re.compile(r'page \d+ of \d+', re.IGNORECASE),
    re.compile(r'\(continued\)|continued on next page', re.IGNORECASE),
    re.compile(r'^date\b.*\b(description|amount)\b', re.IGNORECASE),
    re.compile(r'account (number|#)', re.IGNORECASE),
]

SHORTENED_PREFIXES = [
    ('FLA DEPT REVENUE', 'FDOR'),
    ('WESTERN UNION', 'WU'),
]


def parse_amount(text: str) -> float:
    """
    Parse a printed amount into a 2-decimal float.

    "$1,234.50" -> 1234.5, "(12.00)" -> -12.0, "45.10-" -> -45.1
    """
    cleaned = text.strip()
    negative = (cleaned.startswith('(') and cleaned.endswith(')')) or cleaned.endswith('-') \
        or cleaned.startswith('-') or cleaned.startswith('$-')
    value = float(re.sub(r'[^0-9.]', '', cleaned))
    return round(-value if negative else value, 2)


def find_amounts(text: str) -> List[float]:
    return [parse_amount(m.group(0)) for m in AMOUNT_REGEX.finditer(text)]


def parse_long_date(text: str) -> Optional[str]:
    """'March 31, 2023' (or 'Mar 31, 2023') in canonical MM/DD/YYYY"""
    for fmt in ('%B %d, %Y', '%b %d, %Y', '%b. %d, %Y'):
        try:
            return datetime.strptime(text.strip(), fmt).strftime(DATE_FORMAT)
        except ValueError:
            continue
    return None


def to_datetime(date_str: str) -> Optional[datetime]:
    try:
        return datetime.strptime(date_str, DATE_FORMAT)
    except (TypeError, ValueError):
        return None


def apply_shortened_prefixes(text: str) -> str:
    upper = text.upper()
    for prefix, short in SHORTENED_PREFIXES:
        if upper.startswith(prefix):
            return short
    return text


def empty_summary() -> Dict:
    return {
        'balance': {'begin': NOT_FOUND, 'end': NOT_FOUND},
        'totals': {'deposits': NOT_FOUND, 'withdrawals': NOT_FOUND,
                   'fees': NOT_FOUND, 'checks': NOT_FOUND},
    }


class BankLayout:
    """
    Extraction strategy for one issuer's statement template.

    Subclasses set:
        key, name: Registry key and display name
        anchor: Literal that identifies the issuer on the first page
        anchor_region: Optional normalized ((x0, x1), (y0, y1)) to look for the anchor in
        company_region: Address block on page 1
        account_region / account_label: Where the account number is printed
        period_regex: Regex with the start and end long-form dates as groups
        summary_heading / summary_heading_region: Literal opening the summary block
        summary_labels: (field, label) pairs read inside the summary block
        deposit_headings / deposit_totals: Literals opening and closing deposit sections
        withdrawal_headings / withdrawal_totals: Same for withdrawals, checks and fees
        noise_patterns: Regexes for undated lines that are not transactions
    """

    key = None
    name = None
    anchor = None
    anchor_region: Optional[Region] = None

    company_region: Optional[Region] = None
    account_region: Optional[Region] = None
    account_label = None

    period_regex = None
    date_regex = re.compile(r'^(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?(?=\s|$)')

    summary_heading = None
    summary_heading_region: Optional[Region] = None
    summary_labels: List[Tuple[str, str]] = []
    summary_accumulate: Tuple[str, ...] = ()

    deposit_headings: Tuple[str, ...] = ()
    deposit_totals: Tuple[str, ...] = ()
    withdrawal_headings: Tuple[str, ...] = ()
    withdrawal_totals: Tuple[str, ...] = ()
    noise_patterns: List = []
    transactions_start_page = 0

    # ============ IDENTIFICATION ============

    def identify(self, lines: List[List[Dict]]) -> bool:
        """True when the anchor literal appears on the first page"""
        if not self.anchor:
            return False

        page = first_page(lines)
        if self.anchor_region:
            texts = texts_within_region(page, *self.anchor_region)
        else:
            texts = [line_text(line) for line in page]
        return any(self.anchor in text for text in texts)

    # ============ HEADER FIELDS ============

    def extract_company(self, lines: List[List[Dict]]) -> Dict:
        """
        Company from the address block region, when the layout has one.

        The first line in the region is the name and the remaining lines
        are joined into the address.
        """
        if not self.company_region:
            return {'name': UNKNOWN}

        texts = texts_within_region(first_page(lines), *self.company_region)
        if not texts:
            return {'name': UNKNOWN}
        company = {'name': texts[0]}
        if len(texts) > 1:
            company['address'] = ', '.join(texts[1:])
        return company

    def extract_account(self, lines: List[List[Dict]]) -> Dict:
        """Account number after account_label, inside account_region when set"""
        page = first_page(lines)
        if self.account_region:
            page = lines_within_region(page, *self.account_region)

        label = self.account_label or re.compile(r'Account (?:number|#)\s*:?', re.IGNORECASE)
        number = self.text_after_label(page, label)
        return {'number': number or UNKNOWN}

    def extract_period(self, lines: List[List[Dict]]) -> Dict:
        """Period start/end from the first line on page 1 matching period_regex"""
        period = {'start': UNKNOWN, 'end': UNKNOWN}
        if self.period_regex is None:
            return period

        for text in self.period_texts(lines):
            match = self.period_regex.search(text)
            if not match:
                continue
            start, end = parse_long_date(match.group(1)), parse_long_date(match.group(2))
            if start and end:
                return {'start': start, 'end': end}
        return period

    def period_texts(self, lines: List[List[Dict]]) -> List[str]:
        return [line_text(line) for line in first_page(lines)]

    # ============ SUMMARY ============

    def extract_summary(self, lines: List[List[Dict]]) -> Dict:
        """
        Read balances and totals from the statement summary block.

        The block starts at the summary heading and ends at the first line
        after a matched label that matches no label. Withdrawals, fees and
        checks are stored negative.
        """
        summary = empty_summary()
        page = first_page(lines)
        start = self._find_summary_start(page)
        if start is None:
            logger.debug("%s: summary heading not found", self.key)
            return summary

        values = {}
        matched_any = False
        for line in page[start:]:
            text = line_text(line)
            field = self._summary_field(text)
            amounts = find_amounts(text)
            if field is None or not amounts:
                if matched_any:
                    break
                continue

            matched_any = True
            amount = amounts[-1]
            if field in self.summary_accumulate:
                values[field] = round(values.get(field, 0) + abs(amount), 2)
            elif field not in values:
                values[field] = amount

        for field, amount in values.items():
            if field in ('begin', 'end'):
                summary['balance'][field] = amount
            elif field == 'deposits':
                summary['totals'][field] = abs(amount)
            else:
                summary['totals'][field] = -abs(amount)
        return summary

    def _find_summary_start(self, page: List[Dict]) -> Optional[int]:
        if not self.summary_heading:
            return None
        for i, line in enumerate(page):
            if self.summary_heading_region:
                texts = texts_within_region([line], *self.summary_heading_region)
            else:
                texts = [line_text(line)]
            if any(self.summary_heading in text for text in texts):
                return i
        return None

    def _summary_field(self, text: str) -> Optional[str]:
        if text.lower().startswith('total'):
            return None
        for field, label in self.summary_labels:
            if label in text:
                return field
        return None

    # ============ TRANSACTIONS ============

    def extract_deposits(self, lines: List[List[Dict]], period: Dict = None) -> List[Dict]:
        return self.extract_transactions(lines, self.deposit_headings, self.deposit_totals, 1, period)

    def extract_withdrawals(self, lines: List[List[Dict]], period: Dict = None) -> List[Dict]:
        return self.extract_transactions(lines, self.withdrawal_headings, self.withdrawal_totals, -1, period)

    def extract_transactions(self, lines: List[List[Dict]], headings: Tuple[str, ...],
                             totals: Tuple[str, ...], sign: int, period: Dict = None) -> List[Dict]:
        """
        Walk the pages and capture transactions between section headings and totals.

        Args:
            lines: Lines per page
            headings: Literals that open a capture window
            totals: Literals that close it
            sign: 1 for deposits, -1 for withdrawals
            period: Statement period, used to infer years of MM/DD dates

        Returns:
            Transaction dicts with signed amounts
        """
        if not headings:
            return []

        builder = _TransactionBuilder(self, sign, period or {})
        capturing = False

        for page_lines in lines[self.transactions_start_page:]:
            for line in page_lines:
                text = line_text(line)
                if not text:
                    continue
                if capturing:
                    if self._starts_with_any(text, totals):
                        builder.flush()
                        capturing = False
                    else:
                        builder.add_line(line['page'], text)
                elif self._is_heading(text, headings):
                    capturing = True

        builder.flush()
        transactions = [t for t in builder.transactions if self.keep_transaction(t)]
        logger.debug("%s: captured %d transaction(s) (sign %d)", self.key, len(transactions), sign)
        return transactions

    def _is_heading(self, text: str, headings: Tuple[str, ...]) -> bool:
        # The heading is the whole line; boilerplate such as "Fees may apply" only shares a prefix
        heading = CONTINUED_REGEX.sub('', text).strip().lower()
        return any(heading == literal.lower() for literal in headings)

    @staticmethod
    def _starts_with_any(text: str, literals: Tuple[str, ...]) -> bool:
        lowered = text.lower()
        return any(lowered.startswith(literal.lower()) for literal in literals)

    def is_noise(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.noise_patterns)

    def keep_transaction(self, transaction: Dict) -> bool:
        return True

    def split_date(self, text: str, period: Dict) -> Tuple[Optional[str], str]:
        """
        Split a leading date token off a line.

        Returns:
            (canonical date or None, remaining text)
        """
        match = self.date_regex.match(text)
        if not match:
            return None, text

        rest = text[match.end():].strip()
        try:
            month, day = int(match.group(1)), int(match.group(2))
        except ValueError:
            return None, rest

        year = match.group(3)
        if year:
            year = int(year)
            if year < 100:
                year += 2000
        else:
            year = self.infer_year(month, period)

        try:
            return datetime(year, month, day).strftime(DATE_FORMAT), rest
        except ValueError:
            return None, rest

    @staticmethod
    def infer_year(month: int, period: Dict) -> int:
        """Year for an MM/DD date, rolling over when the period spans new year"""
        start = to_datetime(period.get('start'))
        end = to_datetime(period.get('end'))
        if start is None and end is None:
            return datetime.now().year
        if start is None:
            return end.year
        if end is not None and end.year != start.year and month < start.month:
            return end.year
        return start.year

    def shorten_description(self, description: str) -> Optional[str]:
        """Shortened form for matching, or None when it equals the original"""
        shortened = apply_shortened_prefixes(description)
        return shortened if shortened != description else None

    # ============ HELPERS ============

    @staticmethod
    def text_after_label(page: List[Dict], label) -> Optional[str]:
        """Text following a label regex on the first line that contains it"""
        for line in page:
            text = line_text(line)
            match = label.search(text)
            if match:
                value = text[match.end():].strip()
                if value:
                    return value
        return None

    def build_transaction(self, date: str, description: str, amount: float) -> Dict:
        description = description.strip() or UNKNOWN
        return {
            'date': date,
            'description': {
                'original': description,
                'shortened': self.shorten_description(description),
            },
            'amount': amount,
        }

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.key}>"


class _TransactionBuilder:
    """Turns the lines of one capture window into transactions"""

    def __init__(self, layout: BankLayout, sign: int, period: Dict):
        self.layout = layout
        self.sign = sign
        self.period = period
        self.transactions = []
        self.pending = None
        self.last_page = None

    def add_line(self, page: int, text: str):
        if any(pattern.search(text) for pattern in IGNORED_LINE_PATTERNS):
            return

        date, rest = self.layout.split_date(text, self.period)
        has_date = self.layout.date_regex.match(text) is not None
        amount_match = AMOUNT_END_REGEX.search(rest)

        if amount_match:
            amount = parse_amount(amount_match.group(1))
            description = rest[:amount_match.start()].strip()
            if not has_date:
                if self.pending is not None:
                    self._complete_pending(description, amount)
                    return
                if self.layout.is_noise(text):
                    logger.debug("%s: skipped noise line '%s'", self.layout.key, text)
                    return
                date = self._fallback_date()
            self.flush()
            self._emit(date or self._fallback_date(), description, amount, page)
        elif has_date:
            self.flush()
            self.pending = {'date': date or self._fallback_date(), 'description': rest, 'page': page}
        elif self.pending is not None:
            self.pending['description'] = f"{self.pending['description']} {text}".strip()
        elif self.transactions and self.last_page == page:
            self._append_description(text)

    def flush(self):
        if self.pending is not None:
            logger.warning("%s: dropped transaction without amount: %s",
                           self.layout.key, self.pending['description'])
            self.pending = None

    def _complete_pending(self, description: str, amount: float):
        pending, self.pending = self.pending, None
        full = f"{pending['description']} {description}".strip()
        self._emit(pending['date'], full, amount, pending['page'])

    def _emit(self, date: str, description: str, amount: float, page: int):
        signed = abs(amount) if self.sign > 0 else -abs(amount)
        self.transactions.append(self.layout.build_transaction(date, description, signed))
        self.last_page = page

    def _append_description(self, text: str):
        previous = self.transactions[-1]
        original = f"{previous['description']['original']} {text}".strip()
        previous['description'] = {
            'original': original,
            'shortened': self.layout.shorten_description(original),
        }

    def _fallback_date(self) -> str:
        if self.transactions:
            return self.transactions[-1]['date']
        return self.period.get('start') or UNKNOWN
