"""
Exception hierarchy for the volunteer scheduler data layer.
"""


class SchedulerError(Exception):
    """Base class for every error raised by the data layer"""
    pass


class InvalidRecordError(SchedulerError):
    """A record is missing a required value or holds an invalid one"""
    pass


class EmptyRecordError(InvalidRecordError):
    """A record has no populated fields (or nothing to change on update)"""
    pass


class DuplicateInBatchError(InvalidRecordError):
    """Two records of the same call collide on the unique key"""
    pass


class CardinalityError(SchedulerError):
    """A single-row read matched zero rows or more than one row"""

    def __init__(self, message: str, count: int = 0):
        super().__init__(message)
        self.count = count


class UnresolvedReferenceError(InvalidRecordError, CardinalityError):
    """A name or calendar value could not be resolved to a stored row"""

    def __init__(self, message: str, count: int = 0):
        CardinalityError.__init__(self, message, count)


class ConflictError(SchedulerError):
    """A create or update would break a unique key"""
    pass


class StoreError(SchedulerError):
    """The underlying database failed; the original exception is chained"""
    pass
