"""
Error types for JSON tag read/write operations
Each core error carries a stable kind name and the HTTP status it maps to
"""

from typing import Optional


class NFCTagError(Exception):
    """Base class for errors that end a tag read or write"""

    kind = "NFCTagError"
    status = 500

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class NoReaderAvailable(NFCTagError):
    kind = "NoReaderAvailable"
    status = 503

    def __init__(self, message: str = "No NFC reader connected."):
        super().__init__(message)


class NoCardPresent(NFCTagError):
    kind = "NoCardPresent"
    status = 404

    def __init__(self, message: str = "No card detected. Place a card on the reader."):
        super().__init__(message)


class PayloadTooLarge(NFCTagError):
    kind = "PayloadTooLarge"
    status = 413

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Data is {size} bytes, exceeds the maximum size of {limit} bytes.")


class WriteFailed(NFCTagError):
    """A block write failed; blocks before it stay written"""

    kind = "WriteFailed"
    status = 500

    def __init__(self, block_index: int, cause: Optional[BaseException] = None):
        self.block_index = block_index
        self.cause = cause
        message = f"Write failed at block {block_index}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ReadFailed(NFCTagError):
    kind = "ReadFailed"
    status = 502

    def __init__(self, block_index: int, cause: Optional[BaseException] = None):
        self.block_index = block_index
        self.cause = cause
        message = f"Read failed at block {block_index}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class MalformedFraming(NFCTagError):
    kind = "MalformedFraming"
    status = 422

    def __init__(self, text: str):
        self.text = text
        super().__init__("Reconstructed data does not look like valid JSON.")


class ParseError(NFCTagError):
    kind = "ParseError"
    status = 409

    def __init__(self, text: str, reason: str):
        self.text = text
        super().__init__(f"Tag data is not valid JSON: {reason}")


class ReaderIOError(Exception):
    """Raised by a reader when a single block transfer fails"""

    def __init__(self, block_index: int, reason: str):
        self.block_index = block_index
        self.reason = reason
        super().__init__(f"block {block_index}: {reason}")
