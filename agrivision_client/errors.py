from agrivision_client.schemas import ErrorKind


class DiagnosisError(Exception):
    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportConnectionError(DiagnosisError):
    kind = ErrorKind.CONNECTION


class TransportTimeoutError(DiagnosisError):
    kind = ErrorKind.TIMEOUT


class StreamingUnsupportedError(TransportConnectionError):
    """The runtime cannot read this response body incrementally."""


class HttpStatusError(DiagnosisError):
    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int) -> None:
        super().__init__(f"AgriVision error: {status_code}")
        self.status_code = status_code


class ProtocolError(DiagnosisError):
    kind = ErrorKind.PROTOCOL


class InvalidRequestError(DiagnosisError):
    kind = ErrorKind.INVALID_REQUEST
