# src/tasko/errors.py

"""
Error taxonomy shared by stores, services and the HTTP layer.

- ValidationError -> 400 (missing / malformed field)
- NotFoundError   -> 404 (id has no matching row)
- anything else   -> 500 (logged, generic message)
"""

from __future__ import annotations


class TaskoError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaskoError):
    status_code = 400


class NotFoundError(TaskoError):
    status_code = 404
