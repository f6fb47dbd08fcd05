"""
Fintrack - Source Package

A personal finance tracker: accounts, income/expense transactions,
categories and spending analytics on top of a hosted backend.

DESIGN PRINCIPLES:
1. The backend owns the data - the client only caches it
2. Any change notification invalidates the whole cached collection
3. Validate before calling the backend, never after
4. Edits are confirmed by the user before they are written
5. Failures are shown to the user with the raw backend message
"""

__version__ = "1.0.0"
__author__ = "Fintrack Team"
