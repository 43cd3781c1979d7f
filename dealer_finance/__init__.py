"""
Dealer Finance Engine

Loan amortization, payment scheduling and payment-ledger bookkeeping for
buy-here-pay-here vehicle sales. All financial math uses Decimal.
"""

__version__ = "1.0.0"
