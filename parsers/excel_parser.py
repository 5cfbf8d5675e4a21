"""
Excel Parser Module - Import a general ledger from an Excel/CSV export

Expected layout (QuickBooks style general ledger export):

    Name                 Date        Amount     Balance
    1000 · Checking                               500.00
    STAPLES              01/05/2023   -45.00     455.00
    WESTERN UNION        01/09/2023  -120.00     335.00
    Total 1000 · Checking            -165.00     335.00
    4010 · Office Supplies
    ...

A row whose name starts with "Total" closes the current account; the next
row's name opens the following one.
"""

import re
import os
import logging
from datetime import datetime
from typing import List, Dict, Optional

import pandas as pd

from config import DATE_FORMATS_TO_TRY, DATE_FORMAT, UNKNOWN

logger = logging.getLogger(__name__)

SKIPPED_SHEETS = ['QuickBooks Export Tips']
TOTAL_MARKER = 'Total'
ACCOUNT_NUMBER_REGEX = re.compile(r'^(\d+(?:\.\d+)?)\s*[·:\-]?\s+(.+)$')


class ExcelParser:
    """Parse general ledger Excel/CSV exports into accounts and entries"""

    def __init__(self):
        self.accounts = []
        self.sheet_name = None
        self.column_mapping = {}

    def parse(self, file_path: str) -> List[Dict]:
        """
        Main entry point - detect file type and parse accordingly

        Returns:
            Ledger accounts with their entries

        Raises:
            FileNotFoundError: The file does not exist
            ValueError: The extension is not .csv, .xlsx or .xls
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        ext = os.path.splitext(file_path)[1].lower()

        if ext == '.csv':
            accounts = self._parse_csv(file_path)
        elif ext in ['.xlsx', '.xls']:
            accounts = self._parse_excel(file_path)
        else:
            raise ValueError(f"Unsupported file format: {ext}")

        self.accounts = accounts
        logger.info("Imported %d ledger accounts from %s", len(accounts), os.path.basename(file_path))
        return accounts

    def _parse_excel(self, file_path: str) -> List[Dict]:
        """Parse the first usable worksheet"""
        excel_file = pd.ExcelFile(file_path)

        for sheet_name in excel_file.sheet_names:
            if sheet_name in SKIPPED_SHEETS:
                continue

            df = excel_file.parse(sheet_name)
            if df.empty:
                continue

            self._detect_columns(df)
            accounts = self.parse_dataframe(df)
            if accounts:
                self.sheet_name = sheet_name
                return accounts

        return []

    def _parse_csv(self, file_path: str) -> List[Dict]:
        for encoding in ['utf-8', 'latin-1', 'cp1252']:
            try:
                df = pd.read_csv(file_path, encoding=encoding)
                break
            except UnicodeDecodeError:
                continue
        else:
            logger.warning("Could not decode CSV file %s", file_path)
            return []

        self._detect_columns(df)
        return self.parse_dataframe(df)

    def _detect_columns(self, df) -> Dict:
        """Auto-detect column mappings based on column names"""
        columns = {col: str(col).lower().strip() for col in df.columns}
        mapping = {}

        date_keywords = ['date', 'trans date', 'transaction date', 'posting date']
        name_keywords = ['name', 'payee', 'description', 'memo', 'account']
        amount_keywords = ['amount', 'transaction amount']
        debit_keywords = ['debit', 'dr']
        credit_keywords = ['credit', 'cr']
        balance_keywords = ['balance', 'running balance']

        for col, col_lower in columns.items():
            if 'date' not in mapping and any(kw in col_lower for kw in date_keywords):
                mapping['date'] = col
            elif 'name' not in mapping and any(kw in col_lower for kw in name_keywords):
                mapping['name'] = col
            elif 'amount' not in mapping and any(kw == col_lower for kw in amount_keywords):
                mapping['amount'] = col
            elif 'balance' not in mapping and any(kw in col_lower for kw in balance_keywords):
                mapping['balance'] = col
            elif 'debit' not in mapping and any(kw == col_lower for kw in debit_keywords):
                mapping['debit'] = col
            elif 'credit' not in mapping and any(kw == col_lower for kw in credit_keywords):
                mapping['credit'] = col

        # QuickBooks leaves the account column unnamed
        if 'name' not in mapping and len(df.columns):
            mapping['name'] = df.columns[0]

        self.column_mapping = mapping
        return mapping

    def parse_dataframe(self, df) -> List[Dict]:
        """
        Walk the rows, opening an account after each "Total" row.

        Returns:
            Accounts in sheet order; duplicate account numbers are merged
        """
        if not self.column_mapping:
            self._detect_columns(df)
        mapping = self.column_mapping

        accounts = {}
        current = None

        for _, row in df.iterrows():
            name = self._cell_text(row.get(mapping['name']))
            date = self._parse_date(row.get(mapping.get('date', '')))
            amount = self._row_amount(row)
            balance = self._parse_amount(row.get(mapping.get('balance', '')))

            if name.startswith(TOTAL_MARKER):
                if current is not None:
                    current['amount_total'] = amount
                    current['ending_balance'] = balance
                current = None
                continue

            if current is None:
                if not name:
                    continue
                current = self._open_account(accounts, name, balance)
                if date is None:
                    continue

            if date is None:
                continue

            entry = {'date': date, 'description': name or UNKNOWN}
            if amount is not None:
                entry['amount'] = amount
            current['entries'].append(entry)

        return list(accounts.values())

    @staticmethod
    def _open_account(accounts: Dict, name: str, balance: Optional[float]) -> Dict:
        match = ACCOUNT_NUMBER_REGEX.match(name)
        number, account_name = (match.group(1), match.group(2).strip()) if match else (name, name)

        if number not in accounts:
            accounts[number] = {
                'number': number,
                'name': account_name,
                'beginning_balance': balance,
                'ending_balance': None,
                'amount_total': None,
                'entries': [],
            }
        return accounts[number]

    def _row_amount(self, row) -> Optional[float]:
        mapping = self.column_mapping
        if 'amount' in mapping:
            return self._parse_amount(row.get(mapping['amount']))
        if 'debit' in mapping or 'credit' in mapping:
            debit = self._parse_amount(row.get(mapping.get('debit', ''))) or 0
            credit = self._parse_amount(row.get(mapping.get('credit', ''))) or 0
            if debit or credit:
                return round(debit - credit, 2)
        return None

    @staticmethod
    def _cell_text(value) -> str:
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return ''
        text = str(value).strip()
        return '' if text == 'nan' else text

    def _parse_date(self, date_val) -> Optional[str]:
        """Parse various date formats and return MM/DD/YYYY"""
        if date_val is None or (isinstance(date_val, float) and pd.isna(date_val)):
            return None

        if isinstance(date_val, (pd.Timestamp, datetime)):
            if pd.isna(date_val):
                return None
            return date_val.strftime(DATE_FORMAT)

        date_str = str(date_val).strip()
        if not date_str or date_str == 'nan':
            return None

        for fmt in DATE_FORMATS_TO_TRY:
            try:
                dt = datetime.strptime(date_str, fmt)
                if dt.year < 100:
                    dt = dt.replace(year=dt.year + 2000)
                return dt.strftime(DATE_FORMAT)
            except ValueError:
                continue

        return None

    def _parse_amount(self, amount_val) -> Optional[float]:
        """Parse amount value to float"""
        if amount_val is None or (isinstance(amount_val, float) and pd.isna(amount_val)):
            return None

        if isinstance(amount_val, (int, float)):
            return round(float(amount_val), 2)

        amount_str = str(amount_val).strip()
        if not amount_str or amount_str == 'nan':
            return None

        amount_str = re.sub(r'[$,]', '', amount_str)

        if amount_str.startswith('(') and amount_str.endswith(')'):
            amount_str = '-' + amount_str[1:-1]

        try:
            return round(float(amount_str), 2)
        except ValueError:
            return None

    def get_summary(self) -> Dict:
        """Get parsing summary"""
        if not self.accounts:
            return {'status': 'no_accounts', 'count': 0}

        return {
            'status': 'success',
            'count': len(self.accounts),
            'entries': sum(len(a['entries']) for a in self.accounts),
            'sheet_name': self.sheet_name,
            'column_mapping': self.column_mapping,
        }
