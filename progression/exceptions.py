from __future__ import annotations

from typing import Any


class ProgressionError(Exception):
    '''Base class for errors surfaced by the progression core.'''

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'details': self.details,
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f'{self.message} | Details: {self.details}'


class InvalidAmount(ProgressionError):
    '''XP amount is not a positive integer.'''


class InvalidSource(ProgressionError):
    '''XP source label is missing or blank.'''


class UnknownCategory(ProgressionError):
    '''Category key is outside the closed category set.'''


class CatalogIntegrityError(ProgressionError):
    '''An achievement definition references data the model does not have.'''


class PersistenceError(ProgressionError):
    '''The progress store failed to load or save.'''


class ConcurrentUpdateError(PersistenceError):
    '''The stored record changed between load and save.'''
