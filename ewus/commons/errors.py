from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    MALFORMED_DOCUMENT = "MalformedDocument"
    MISSING_FIELD = "MissingField"
    INVALID_FIELD_FORMAT = "InvalidFieldFormat"
    BAD_CREDENTIALS_RESPONSE = "BadCredentialsResponse"
    INCOMPLETE_SESSION_DATA = "IncompleteSessionData"


class EwusError(Exception):
    """Base de los errores de eWUŚ. Cada subclase fija su `kind`."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedDocument(EwusError):
    kind = ErrorKind.MALFORMED_DOCUMENT


class MissingField(EwusError):
    kind = ErrorKind.MISSING_FIELD

    def __init__(self, field: str):
        super().__init__(f"Campo requerido ausente: {field}")
        self.field = field


class InvalidFieldFormat(EwusError):
    kind = ErrorKind.INVALID_FIELD_FORMAT

    def __init__(self, field: str, raw_value: Optional[str]):
        super().__init__(f"Formato inválido en {field}: {raw_value!r}")
        self.field = field
        self.raw_value = raw_value


class BadCredentialsResponse(EwusError):
    kind = ErrorKind.BAD_CREDENTIALS_RESPONSE


class IncompleteSessionData(EwusError):
    kind = ErrorKind.INCOMPLETE_SESSION_DATA
