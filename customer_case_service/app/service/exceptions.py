"""
Custom exceptions for the Customer Case service.
"""
from typing import List, Optional

class BaseCustomerCaseError(Exception):
    """Base class for exceptions in this module."""
    pass

class CaseCreationRejectedError(BaseCustomerCaseError):
    """Raised when the active case guard refuses to let a case be created."""
    def __init__(self, message: str, trace: Optional[List[str]] = None):
        self.trace = list(trace or [])
        super().__init__(message)

class MissingCaseTargetError(CaseCreationRejectedError):
    """Raised when no candidate case was handed to the guard."""
    def __init__(self, trace: Optional[List[str]] = None):
        super().__init__("Cannot retrieve target case from context.", trace)

class MissingCustomerReferenceError(CaseCreationRejectedError):
    """Raised when the candidate case lacks a usable customer reference."""
    def __init__(self, detail: str = "Cannot retrieve customer ID from case.", trace: Optional[List[str]] = None):
        super().__init__(detail, trace)

class ActiveCaseExistsError(CaseCreationRejectedError):
    """Raised when the customer already has an open case."""
    def __init__(self, customer_id: str, trace: Optional[List[str]] = None):
        self.customer_id = customer_id
        super().__init__(f"Case already exists for customer ID: {customer_id}.", trace)

class UnexpectedGuardError(CaseCreationRejectedError):
    """Raised when the guard fails for a reason other than a rejection."""
    def __init__(self, trace: Optional[List[str]] = None):
        super().__init__("An unexpected error has occurred.", trace)

class RecordNotFoundError(BaseCustomerCaseError):
    """Raised when a record looked up by ID does not exist."""
    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity.capitalize()} with ID '{record_id}' not found.")

class ConfigurationError(BaseCustomerCaseError):
    """Raised when a configuration issue is detected."""
    pass
