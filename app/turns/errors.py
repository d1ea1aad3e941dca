"""
Client-facing error kinds raised by the turn scheduler.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer should answer with.  None of them are fatal and none imply a retry.
"""


class TurnError(Exception):
    kind: str = "TurnError"
    status_code: int = 400
    default_message: str = "Request rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class MissingIdentity(TurnError):
    kind = "MissingIdentity"
    default_message = "Email required"


class InvalidIdentity(TurnError):
    kind = "InvalidIdentity"
    default_message = "Invalid email format"


class AlreadyActive(TurnError):
    kind = "AlreadyActive"
    default_message = "Already your turn"


class NotInLine(TurnError):
    kind = "NotInLine"
    status_code = 404
    default_message = "User not in queue"


class NoActiveTurn(TurnError):
    kind = "NoActiveTurn"
    status_code = 403
    default_message = "No active user"


class NotYourTurn(TurnError):
    kind = "NotYourTurn"
    status_code = 403
    default_message = "Not your turn"


class Unauthorized(TurnError):
    kind = "Unauthorized"
    status_code = 403
    default_message = "Unauthorized"
