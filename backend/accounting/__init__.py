"""
Accounting app - Double-entry bookkeeping core.

This app provides:
- Account: Chart of Accounts with hierarchy
- AccountingPeriod: Open / closed / locked date ranges
- JournalEntry: Draft, posted and voided double-entry entries
- JournalLine: Debit/credit lines

Commands handle all mutations so locking and the ledger stay consistent.
"""
