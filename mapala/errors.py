"""Errors raised by the store layer.

Each error carries the HTTP status and the public message the API answers
with, so route handlers never build error responses by hand.
"""


class MapalaError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(MapalaError):
    status_code = 400
    message = "Invalid request"


class ConflictError(MapalaError):
    status_code = 400
    message = "Username already exists"


class AuthError(MapalaError):
    status_code = 400
    message = "Invalid username or password"


class UnauthorizedError(MapalaError):
    status_code = 401
    message = "Unauthorized"


class NotFoundError(MapalaError):
    status_code = 404
    message = "Item not found"


class InsufficientStockError(MapalaError):
    status_code = 400
    message = "Not enough quantity available"


class StoreError(MapalaError):
    status_code = 500
    message = "Server error"
