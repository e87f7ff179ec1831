"""Repository error types"""


class PersistenceError(Exception):
    """A storage read or write failed; the unit of work must be rolled back"""
