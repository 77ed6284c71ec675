"""
Exceptions raised by the savings calculator.
"""
from typing import Optional


class CalculatorError(Exception):
    """Base exception for the calculator."""
    pass


class ValidationError(CalculatorError):
    """Raised when an input field is missing or out of range."""

    def __init__(self, field: str, code: str, message: Optional[str] = None):
        self.field = field
        self.code = code
        self.message = message or code
        super().__init__(f"{field}: {self.message}")

    def to_dict(self):
        return {"error": self.code, "field": self.field, "message": self.message}


class NotFoundError(CalculatorError):
    """Raised for a role, market, experience tier or complexity the reference data does not know."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"Unknown {kind}: {key!r}")

    def to_dict(self):
        return {"error": "NotFound", "kind": self.kind, "key": self.key, "message": str(self)}


class ComputationError(CalculatorError):
    """Raised when a computed figure breaks an output invariant."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ReferenceDataError(CalculatorError):
    """Raised when injected reference tables are incomplete."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)
