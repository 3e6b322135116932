"""
finboard - Personal Finance Dashboard Core

Account balances, categorized transactions and a stock portfolio,
with AI-assisted price lookup and advice.

DESIGN PRINCIPLES:
1. The ledger invariant (balance == opening + signed transactions) always holds
2. Untrusted AI text is parsed defensively and never trusted blindly
3. Fail visibly: partial writes are flagged, not masked
4. Every balance movement is auditable
5. Storage layer is swappable (memory or Google Sheets)
"""

__version__ = "1.0.0"
__author__ = "finboard Team"
