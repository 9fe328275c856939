# workscore/exceptions.py


class WorkscoreError(Exception):
    """Base class for errors raised by the scoring engine."""


class ScoringConfigError(WorkscoreError):
    """The weight set is invalid; no score may be computed from it."""


class InvalidWeekError(WorkscoreError):
    """A report window is not a Monday-Sunday calendar week."""
