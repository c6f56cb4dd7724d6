"""
Typed failures raised or reported by the game core
"""
from typing import Optional


class Crazy88Error(Exception):
    """Base class for all game core failures"""

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(Crazy88Error):
    """Precondition failed before any write (bad transition, closed phase, bad upload)"""

    code = "invalid"


class TransientStoreError(Crazy88Error):
    """Datastore write failed (conflict, timeout, connection loss)"""

    code = "store_error"


class UploadError(Crazy88Error):
    """Evidence upload failed after the retry budget was exhausted"""

    code = "upload_failed"

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts
