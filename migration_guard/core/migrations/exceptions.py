"""
Migration Guard - Exceptions
"""


class MigrationGuardError(Exception):
    """Base exception for migration guard errors"""
    pass


class UnsafeSQLFragmentError(MigrationGuardError, ValueError):
    """Raised when a raw SQL fragment contains statement separators or comments"""
    pass


class MigrationLoadError(MigrationGuardError):
    """Raised when a migration target cannot be imported or instantiated"""
    pass
