"""Services module.

This module provides the service layer architecture:
- exceptions: Custom service exceptions
- invoices: Invoice bootstrap, number assignment and lookups
"""
