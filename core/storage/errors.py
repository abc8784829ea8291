"""
UnitEcon Storage - Errors
===========================
"""


class PersistenceError(Exception):
    """A gateway read or write failed."""

    def __init__(self, operation: str, key: str, reason: str):
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"{operation} '{key}' failed: {reason}")
