"""
Levenshtein Matcher Module - Rank ledger accounts and entries for bank transactions

For every transaction, every ledger entry is compared with the transaction
description by normalized edit distance:

    ratio = 1 - distance(description, ENTRY) / len(ENTRY)

Each comparison that clears a threshold is an "observation" for the entry's
account. Accounts are ranked by observation count, then average ratio.
Every function here returns new objects; nothing in the statement or
ledger is modified.
"""

import re
import copy
import logging
from typing import Dict, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from config import (RATIO_CUTOFF, WORD_RATIO_CUTOFF, WORD_MATCH_RATIO, ACCOUNT_SUFFIX_RATIO,
                    DESCRIPTION_MAX_LENGTH, SUSPENSE_ACCOUNT_NAME, SUSPENSE_ACCOUNT_NUMBER)

logger = logging.getLogger(__name__)

METHOD = 'levenshtein'
FOUR_DIGITS_REGEX = re.compile(r'^\d{4}$')
NON_LETTERS_REGEX = re.compile(r'[^a-zA-Z\s]')

# (entry description, ratio) - ratio is None for a repeated raw ledger entry
Observation = Tuple[str, Optional[float]]


def calc_ratio(first: str, second: str) -> float:
    """
    Normalized edit similarity of first against second.

    1.0 only for identical strings; negative when first is much longer
    than second.
    """
    if first == second:
        return 1.0
    if not second:
        return 0.0
    return 1 - Levenshtein.distance(first, second) / len(second)


def clean_word(word: str) -> str:
    return word.replace(',', '').replace('.', '').replace('#', '')


def candidate_description(transaction: Dict, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """The shortened description in full, else the original truncated; upper-cased"""
    description = transaction['description']
    shortened = description.get('shortened')
    if shortened:
        return shortened.upper()
    return description['original'][:max_length].upper()


def build_candidate(account: Dict, observations: List[Observation]) -> Optional[Dict]:
    """
    Collapse an account's observations into a ranked match candidate.

    A repeated description counts again at the ratio it was first
    recorded with.

    Returns:
        {'account': {...}, 'stats': {...}, 'entries': [...]} or None when
        there were no observations
    """
    entries = {}
    total = 0.0

    for description, ratio in observations:
        existing = entries.get(description)
        if existing is not None:
            existing['count'] += 1
            total += existing['ratio']
        else:
            entries[description] = {'description': description, 'ratio': ratio, 'count': 1}
            total += ratio

    if not observations:
        return None

    ranked = sorted(entries.values(), key=lambda e: (-e['ratio'], -e['count']))
    return {
        'account': {'name': account['name'], 'number': account['number']},
        'stats': {
            'total_entries': len(observations),
            'average_ratio': total / len(observations),
        },
        'entries': ranked,
    }


def rank_candidates(candidates: List[Dict]) -> List[Dict]:
    """Most observations first, then highest average ratio"""
    return sorted(candidates, key=lambda c: (-c['stats']['total_entries'], -c['stats']['average_ratio']))


def find_suspense_account(accounts: List[Dict], name: str = SUSPENSE_ACCOUNT_NAME,
                          number: str = SUSPENSE_ACCOUNT_NUMBER) -> Dict:
    """The ledger's suspense account, or the conventional default"""
    for account in accounts:
        if account['name'].upper() == name.upper():
            return {'name': name, 'number': account['number']}
    return {'name': name, 'number': number}


class LevenshteinMatcher:
    """
    Score transactions against ledger entries.

    Usage:
        matcher = LevenshteinMatcher()
        results = matcher.code(statement, ledger)
    """

    def __init__(self, ratio_cutoff: float = RATIO_CUTOFF,
                 word_ratio_cutoff: float = WORD_RATIO_CUTOFF,
                 word_match_ratio: float = WORD_MATCH_RATIO,
                 account_suffix_ratio: float = ACCOUNT_SUFFIX_RATIO,
                 description_max_length: int = DESCRIPTION_MAX_LENGTH,
                 suspense_account_name: str = SUSPENSE_ACCOUNT_NAME,
                 suspense_account_number: str = SUSPENSE_ACCOUNT_NUMBER):
        self.ratio_cutoff = ratio_cutoff
        self.word_ratio_cutoff = word_ratio_cutoff
        self.word_match_ratio = word_match_ratio
        self.account_suffix_ratio = account_suffix_ratio
        self.description_max_length = description_max_length
        self.suspense_account_name = suspense_account_name
        self.suspense_account_number = suspense_account_number

    def entry_ratios(self, description: str, entry_description: str) -> List[float]:
        """
        Every ratio one ledger entry contributes for a candidate description.

        1. The whole description against the whole entry
        2. Each alphabetic word against the whole entry and against each entry word
        3. Each 4-digit word (account number suffix) the same way
        """
        entry = entry_description.upper()
        ratios = []

        ratio = calc_ratio(description, entry)
        if ratio >= self.ratio_cutoff:
            ratios.append(ratio)

        words = NON_LETTERS_REGEX.sub('', description).split()
        suffixes = [w for w in (clean_word(w) for w in description.split()) if FOUR_DIGITS_REGEX.match(w)]

        for word in [clean_word(w) for w in words] + suffixes:
            if not word:
                continue
            ratios.extend(self._entry_word_ratios(word, entry))
            if calc_ratio(word, entry) >= self.word_ratio_cutoff:
                ratios.append(self._word_ratio(word, clean_word(entry)))

        return ratios

    def _entry_word_ratios(self, word: str, entry: str) -> List[float]:
        ratios = []
        for entry_word in entry.split():
            entry_word = clean_word(entry_word)
            if entry_word and calc_ratio(word, entry_word) >= self.word_ratio_cutoff:
                ratios.append(self._word_ratio(word, entry_word))
        return ratios

    def _word_ratio(self, word: str, entry_word: str) -> float:
        # Matching last-4 digits of an account number is a strong signal
        if FOUR_DIGITS_REGEX.match(word) and FOUR_DIGITS_REGEX.match(entry_word):
            return self.account_suffix_ratio
        return self.word_match_ratio

    def account_observations(self, description: str, account: Dict) -> List[Observation]:
        observations = []
        recorded = set()
        for entry in account['entries']:
            key = entry['description']
            if key in recorded:
                observations.append((key, None))
                continue
            for ratio in self.entry_ratios(description, key):
                observations.append((key, ratio))
                recorded.add(key)
        return observations

    def match_transaction(self, transaction: Dict, accounts: List[Dict]) -> List[Dict]:
        """
        Ranked match candidates for one transaction.

        Never empty: a suspense candidate is returned when nothing matched.
        """
        description = candidate_description(transaction, self.description_max_length)

        candidates = []
        for account in accounts:
            candidate = build_candidate(account, self.account_observations(description, account))
            if candidate:
                candidates.append(candidate)

        if not candidates:
            return [self.suspense_candidate(transaction, accounts)]
        return rank_candidates(candidates)

    def suspense_candidate(self, transaction: Dict, accounts: List[Dict]) -> Dict:
        description = transaction['description']
        words = (description.get('shortened') or description['original']).split()
        return {
            'account': find_suspense_account(accounts, self.suspense_account_name,
                                             self.suspense_account_number),
            'stats': {'total_entries': 0, 'average_ratio': 0.0},
            'entries': [{
                'description': words[0].upper() if words else 'UNKNOWN',
                'ratio': 0.0,
                'count': 0,
            }],
        }

    def match_transactions(self, transactions: List[Dict], accounts: List[Dict]) -> List[Dict]:
        """Copies of the transactions, each with its ranked 'matches'"""
        matched = []
        for transaction in transactions:
            result = copy.deepcopy(transaction)
            result['matches'] = self.match_transaction(transaction, accounts)
            matched.append(result)
        return matched

    def code(self, statement, ledger) -> Dict:
        """
        Match every deposit and withdrawal of a statement against a ledger.

        Args:
            statement: BankStatement (or anything with deposits/withdrawals lists)
            ledger: GeneralLedger (or anything with an accounts list)

        Returns:
            {'method': 'levenshtein', 'deposits': [...], 'withdrawals': [...]}
        """
        accounts = ledger.accounts or []
        results = {
            'method': METHOD,
            'deposits': self.match_transactions(statement.deposits or [], accounts),
            'withdrawals': self.match_transactions(statement.withdrawals or [], accounts),
        }

        suspense = find_suspense_account(accounts, self.suspense_account_name,
                                         self.suspense_account_number)
        unmatched = sum(1 for key in ('deposits', 'withdrawals') for t in results[key]
                        if t['matches'][0]['stats']['total_entries'] == 0
                        and t['matches'][0]['account'] == suspense)
        logger.info("Matched %d deposits and %d withdrawals against %d accounts (%d to suspense)",
                    len(results['deposits']), len(results['withdrawals']), len(accounts), unmatched)
        return results


def code(statement, ledger) -> Dict:
    """Convenience function using the default thresholds"""
    return LevenshteinMatcher().code(statement, ledger)
