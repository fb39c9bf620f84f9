"""Domain exceptions for the Risk Sentinel backend"""

from typing import Dict


class SentinelError(Exception):
    """Base exception for Risk Sentinel"""

    status_code = 500

    def __init__(self, message: str, details: Dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ScoringError(SentinelError):
    """Hosted model call failed or returned an unusable verdict"""

    status_code = 502


class DuplicateProtocolError(SentinelError):
    """A protocol with this contract address already exists"""

    status_code = 409

    def __init__(self, contract_address: str):
        super().__init__(f"Protocol already exists for contract {contract_address}")
        self.contract_address = contract_address


class DuplicateTransactionError(SentinelError):
    """A transaction with this hash has already been recorded"""

    status_code = 409

    def __init__(self, transaction_hash: str):
        super().__init__("Transaction already recorded", {"transactionHash": transaction_hash})
        self.transaction_hash = transaction_hash
