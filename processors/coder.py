"""
Coder Module - Reviewable coding decisions for one statement against one ledger

Each transaction gets:
    selection           the automatic pick (top-ranked account and entry)
    selection_override  a reviewer-editable account/entry, disabled until toggled

The override takes precedence when enabled, but the selection is never
changed by override operations so the two can always be compared.
"""

import re
import copy
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from config import MAX_WORKERS
from classifiers.levenshtein_matcher import LevenshteinMatcher, find_suspense_account

logger = logging.getLogger(__name__)

TRANSACTION_LISTS = ('deposits', 'withdrawals')
DIGITS_REGEX = re.compile(r'\d')


def strip_digits(text: str) -> str:
    """'CHECKCARD 0907 ACME #123' -> 'CHECKCARD  ACME #'"""
    return DIGITS_REGEX.sub('', text)


def initial_selection(matches: List[Dict]) -> Dict:
    top = matches[0]
    entry = top['entries'][0]
    return {
        'account': {'name': top['account']['name'], 'number': top['account']['number'], 'index': 0},
        'entry': {'description': entry['description'], 'ratio': entry['ratio'], 'index': 0},
    }


def initial_override(matches: List[Dict]) -> Dict:
    top = matches[0]
    return {
        'account': {'name': top['account']['name'], 'number': top['account']['number']},
        'entry': {'description': top['entries'][0]['description'], 'enabled': False},
        'enabled': False,
    }


def _account_index(matches: List[Dict], number: str) -> int:
    for i, match in enumerate(matches):
        if match['account']['number'] == number:
            return i
    return -1


class Coder:
    """
    Coding results for one BankStatement against one GeneralLedger.

    Transactions are addressed by list name ('deposits' or 'withdrawals')
    and position in that list.
    """

    def __init__(self, statement, ledger, matcher: LevenshteinMatcher = None):
        self.statement = statement
        self.ledger = ledger
        self.matcher = matcher or LevenshteinMatcher()
        self._lock = threading.Lock()

        results = self.matcher.code(statement, ledger)
        self.method = results['method']
        self.results = {kind: results[kind] for kind in TRANSACTION_LISTS}
        self.suspense_account = find_suspense_account(ledger.accounts or [],
                                                      self.matcher.suspense_account_name,
                                                      self.matcher.suspense_account_number)

        for kind in TRANSACTION_LISTS:
            for transaction in self.results[kind]:
                transaction['selection'] = initial_selection(transaction['matches'])
                transaction['selection_override'] = initial_override(transaction['matches'])

    # ============ ACCESS ============

    def get_transactions(self, kind: str) -> List[Dict]:
        """
        Current list of coded transactions.

        Raises:
            ValueError: kind is not 'deposits' or 'withdrawals'
        """
        if kind not in TRANSACTION_LISTS:
            raise ValueError(f"Unknown transaction list: {kind}. Expected one of {list(TRANSACTION_LISTS)}")
        return self.results[kind]

    def get_transaction(self, kind: str, index: int) -> Dict:
        transactions = self.get_transactions(kind)
        if not 0 <= index < len(transactions):
            raise IndexError(f"No {kind} transaction at index {index}")
        return transactions[index]

    def get_override_entries(self, kind: str, index: int, account_number: str) -> List[Dict]:
        """Matched entries of an account for a transaction ([] when the account did not match)"""
        matches = self.get_transaction(kind, index)['matches']
        account_index = _account_index(matches, account_number)
        if account_index == -1:
            return []
        return matches[account_index]['entries']

    def effective_coding(self, kind: str, index: int) -> Dict:
        """
        Account and entry to export, resolving override precedence.

        An enabled override account replaces the selected account. An enabled
        override entry replaces the entry; otherwise an overridden account uses
        its own best matched entry when it has one.
        """
        transaction = self.get_transaction(kind, index)
        selection = transaction['selection']
        override = transaction['selection_override']

        account = {'name': selection['account']['name'], 'number': selection['account']['number']}
        entry = selection['entry']['description']

        if override['enabled']:
            account = dict(override['account'])
            entries = self.get_override_entries(kind, index, account['number'])
            if entries:
                entry = entries[0]['description']
        if override['entry']['enabled']:
            entry = override['entry']['description']

        return {
            'account': account,
            'entry': entry,
            'overridden': override['enabled'] or override['entry']['enabled'],
        }

    # ============ SELECTION ============

    def update_selection_entry(self, kind: str, index: int, entry_index: int) -> Dict:
        """
        Pick another matched entry of the selected account.

        Raises:
            IndexError: No such transaction or entry
        """
        with self._lock:
            transaction = self.get_transaction(kind, index)
            selection = transaction['selection']
            account_index = selection['account']['index']
            if account_index < 0:
                raise IndexError(f"Selected account {selection['account']['number']} has no matched entries")

            entries = transaction['matches'][account_index]['entries']
            if not 0 <= entry_index < len(entries):
                raise IndexError(f"No entry at index {entry_index}")

            entry = entries[entry_index]
            selection['entry'] = {'description': entry['description'], 'ratio': entry['ratio'],
                                  'index': entry_index}
            return selection

    # ============ OVERRIDE ============

    def update_override_account(self, kind: str, index: int, account: Dict) -> Dict:
        """Set the override account ({'name', 'number'}); the selection is untouched"""
        with self._lock:
            override = self.get_transaction(kind, index)['selection_override']
            override['account'] = {'name': account['name'], 'number': account['number']}
            return override

    def update_override_entry(self, kind: str, index: int, description: str) -> Dict:
        """Set or create the override entry description"""
        with self._lock:
            override = self.get_transaction(kind, index)['selection_override']
            override['entry']['description'] = description
            return override

    def toggle_override(self, kind: str, index: int, enabled: bool = None) -> bool:
        """Flip (or set) whether the override account is in effect"""
        with self._lock:
            override = self.get_transaction(kind, index)['selection_override']
            override['enabled'] = (not override['enabled']) if enabled is None else enabled
            return override['enabled']

    def toggle_override_entry(self, kind: str, index: int, enabled: bool = None) -> bool:
        with self._lock:
            entry = self.get_transaction(kind, index)['selection_override']['entry']
            entry['enabled'] = (not entry['enabled']) if enabled is None else enabled
            return entry['enabled']

    # ============ BULK OPERATIONS ============

    def propagate_selection(self, kind: str, index: int) -> int:
        """Apply a transaction's selection to every like-description transaction"""
        return self._propagate(kind, index, 'selection')

    def propagate_override(self, kind: str, index: int) -> int:
        """Apply a transaction's override to every like-description transaction"""
        return self._propagate(kind, index, 'selection_override')

    def _propagate(self, kind: str, index: int, field: str) -> int:
        """
        Copy one field to every transaction in the list whose original
        description matches once digits are removed.

        The list is replaced in one step, so readers see either none or all
        of the changes.

        Returns:
            Number of other transactions updated
        """
        with self._lock:
            transactions = self.get_transactions(kind)
            source = self.get_transaction(kind, index)
            key = strip_digits(source['description']['original'])

            updated = []
            changed = 0
            for i, transaction in enumerate(transactions):
                if i == index or strip_digits(transaction['description']['original']) != key:
                    updated.append(transaction)
                    continue

                target = dict(transaction)
                value = copy.deepcopy(source[field])
                if field == 'selection':
                    self._reindex_selection(value, target['matches'])
                target[field] = value
                updated.append(target)
                changed += 1

            self.results[kind] = updated

        logger.info("Propagated %s of %s #%d to %d like-description transaction(s)", field, kind, index, changed)
        return changed

    @staticmethod
    def _reindex_selection(selection: Dict, matches: List[Dict]):
        account_index = _account_index(matches, selection['account']['number'])
        selection['account']['index'] = account_index
        entry_index = -1
        if account_index != -1:
            for i, entry in enumerate(matches[account_index]['entries']):
                if entry['description'] == selection['entry']['description']:
                    entry_index = i
                    break
        selection['entry']['index'] = entry_index

    def remove_transaction(self, kind: str, index: int) -> Dict:
        with self._lock:
            transactions = self.get_transactions(kind)
            removed = self.get_transaction(kind, index)
            self.results[kind] = transactions[:index] + transactions[index + 1:]
            return removed

    def update_transaction_amount(self, kind: str, index: int, amount: float) -> Dict:
        """Correct an OCR'd amount; deposits stay positive and withdrawals negative"""
        with self._lock:
            transaction = self.get_transaction(kind, index)
            transaction['amount'] = abs(round(amount, 2)) if kind == 'deposits' else -abs(round(amount, 2))
            return transaction

    # ============ REPORTING ============

    def is_suspense(self, transaction: Dict) -> bool:
        top = transaction['matches'][0]
        return top['stats']['total_entries'] == 0 and top['account'] == self.suspense_account

    def get_summary(self) -> Dict:
        summary = {'method': self.method}
        for kind in TRANSACTION_LISTS:
            transactions = self.results[kind]
            summary[kind] = {
                'count': len(transactions),
                'total': round(sum(t['amount'] for t in transactions), 2),
                'suspense': sum(1 for t in transactions if self.is_suspense(t)),
                'overridden': sum(1 for t in transactions
                                  if t['selection_override']['enabled']
                                  or t['selection_override']['entry']['enabled']),
            }
        return summary

    def to_dict(self) -> Dict:
        statement = self.statement
        return {
            'method': self.method,
            'bank': getattr(statement, 'bank', None),
            'account': getattr(statement, 'account', None),
            'period': getattr(statement, 'period', None),
            'summary': self.get_summary(),
            'transactions': {
                kind: [dict(t, coding=self.effective_coding(kind, i)) for i, t in enumerate(self.results[kind])]
                for kind in TRANSACTION_LISTS
            },
        }


def code_statements(statements: List, ledger, max_workers: int = MAX_WORKERS,
                    matcher: Optional[LevenshteinMatcher] = None) -> List[Coder]:
    """
    Code several statements against one ledger.

    Pairings share nothing mutable, so they run on a thread pool. Results
    keep the order of statements.
    """
    if not statements:
        return []

    matcher = matcher or LevenshteinMatcher()
    workers = max(1, min(max_workers, len(statements)))
    if workers == 1:
        return [Coder(statement, ledger, matcher) for statement in statements]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda statement: Coder(statement, ledger, matcher), statements))
