from __future__ import annotations


class YinggeError(Exception):
    """Base error of the asset library core.

    ``kind`` is a stable identifier surfaced to API clients, ``status_code`` the
    HTTP status the router layer maps it to.
    """

    kind = "error"
    status_code = 500

    def __init__(self, msg: str, where: str | None = None):
        super().__init__(msg)
        self.where = where or "unknown"

    def envelope(self) -> dict:
        return {"error": {"kind": self.kind, "where": self.where, "message": str(self)}}


class NotFound(YinggeError):
    kind = "not_found"
    status_code = 404


class InvalidInput(YinggeError):
    kind = "invalid_input"
    status_code = 400


class IoFailure(YinggeError):
    kind = "io_failure"
    status_code = 500


class DecodeFailure(YinggeError):
    kind = "decode_failure"
    status_code = 422


class ProviderError(YinggeError):
    kind = "provider_error"
    status_code = 502
