"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """A required request field is missing or malformed"""

    pass


class NotFound(DomainException):
    """Referenced member, loan or record does not exist"""

    pass


class Conflict(DomainException):
    """Record would duplicate a unique member attribute (email, phone)"""

    pass


class AuthenticationFailed(DomainException):
    """Credentials did not match the member record"""

    pass


class CreditCheckFailed(DomainException):
    """Credit check did not pass, loan cannot be approved"""

    pass


class ExceedsLimit(DomainException):
    """Requested loan amount is above the savings-based maximum"""

    def __init__(self, amount: float, max_allowed: float):
        self.amount = amount
        self.max_allowed = max_allowed
        super().__init__(f"Loan amount exceeds maximum allowed ({max_allowed:.0f})")


class InvalidState(DomainException):
    """Record is not in a state that allows the requested transition"""

    pass
