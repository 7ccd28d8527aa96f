"""
SalaryTalk — Confidential Salary Negotiation

An employer submits an encrypted offer, a candidate submits a public
expectation, and the ledger decides whether they match. The employer's
figure only becomes public after a decryption proof is verified on-chain.
"""

__version__ = "0.1.0"
