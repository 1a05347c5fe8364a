"""Errors raised by the roster, ledger and store and mapped to HTTP responses."""


class TournamentError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(TournamentError):
    """Malformed request body or missing field. Nothing was written."""
    status_code = 400


class CapacityError(TournamentError):
    status_code = 400

    def __init__(self, message='Flight is full'):
        super().__init__(message)


class NotFoundError(TournamentError):
    status_code = 404


class StoreError(TournamentError):
    """A transaction failed and was rolled back."""
    status_code = 500
