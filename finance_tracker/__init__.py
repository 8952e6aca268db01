"""Finance tracker backend: recurring transactions, category limits and reminders."""

from . import db, recurrence

__all__ = [
    'db',
    'recurrence',
]
