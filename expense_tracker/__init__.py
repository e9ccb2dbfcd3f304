"""
Expense Tracker - Source Package

Personal finance tracker that keeps transactions and savings goals in a
Google Sheets spreadsheet, so the data stays readable and editable by hand.

DESIGN PRINCIPLES:
1. The spreadsheet is authoritative; nothing is cached between requests
2. Reads repair legacy rows instead of rejecting them
3. Fail visibly: backend errors reach the caller; only idempotent calls are retried
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
