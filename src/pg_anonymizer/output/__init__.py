"""
Output modules for the PostgreSQL dump anonymizer.

This package contains output handling:
- report: Run summary and JSON report
"""
