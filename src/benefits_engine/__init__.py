"""Employee benefits approval workflow engine and loan repayment ledger."""

__version__ = "0.1.0"
