"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    status_code = 400


class InvalidFrequencyError(DomainException):
    """Frequency rule is unrecognized or missing its day selector"""

    status_code = 422


class InvalidOwnershipError(DomainException):
    """Referenced record belongs to another owner"""

    status_code = 403


class RecordNotFoundError(DomainException):
    """Referenced recurrence, version, loan or transaction does not exist"""

    status_code = 404


class NotNewestVersionError(DomainException):
    """Only the active (newest) amendment of a recurrence can be reverted"""

    status_code = 409


class InvalidAmendmentError(DomainException):
    """Amendment would break the ordered, non-overlapping version chain"""

    status_code = 422


class NoValidFieldsError(DomainException):
    """Propagation patch holds no allow-listed field"""

    status_code = 400


class DependentRecordsExistError(DomainException):
    """Deletion blocked because transactions still reference the record"""

    status_code = 409
