class CabinetException(Exception):
    """Base exception for the application"""
    pass


class AuthenticationError(CabinetException):
    """Missing or invalid credentials"""
    pass


class ValidationError(CabinetException):
    """Input rejected by a naming, size or type policy"""
    pass


class NotFoundError(CabinetException):
    """Entity absent, or not visible to the caller"""
    pass


class ConflictError(CabinetException):
    """Duplicate sibling folder name or share token"""
    pass


class InvalidOperationError(CabinetException):
    """Cycle-forming move or a reassignment to a folder the caller cannot use"""
    pass


class NotEmptyError(CabinetException):
    """Folder delete blocked by child folders or files"""
    pass


class InvalidFormatError(CabinetException):
    """Malformed duration expression or share token"""
    pass


class ExpiredError(CabinetException):
    """Share token past its validity window"""
    pass


class ForbiddenError(CabinetException):
    """Valid share token, but the target lies outside its subtree"""
    pass


class StorageFailureError(CabinetException):
    """Object storage backend error; the original error is chained as __cause__"""
    pass
