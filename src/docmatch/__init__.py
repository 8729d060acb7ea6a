"""
Transaction → Candidate Documents → Scored, Ranked Suggestions

A deterministic, testable matching engine that finds the invoice or receipt
belonging to a bank transaction (or the transaction belonging to a file)
across local documents and connected mail accounts, with auditable
confidence scores.
"""

__version__ = "0.1.0"
