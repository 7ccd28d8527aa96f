"""
SalaryTalk — External Service Clients

The ledger (offer persistence and matching) and the encryption gateway
(ciphertexts, input proofs and decryption proofs).
"""

from salarytalk.clients.encryption import EncryptionGateway, LocalEncryptionGateway
from salarytalk.clients.ledger import HttpLedgerClient, LedgerClient
from salarytalk.clients.memory_ledger import InMemoryLedger

__all__ = [
    "LedgerClient",
    "HttpLedgerClient",
    "InMemoryLedger",
    "EncryptionGateway",
    "LocalEncryptionGateway",
]
