class StickerGridError(Exception):
    """Base class of all errors raised by slicing, resizing and the segment store"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidImageError(StickerGridError):
    """The source image is too small for the requested grid"""

    status_code = 400


class DecodeError(StickerGridError):
    """The payload can not be decoded as an image"""

    status_code = 400


class EncodeError(StickerGridError):
    """A pixel buffer could not be serialized to the output format"""

    status_code = 500


class ConcurrentMutationError(StickerGridError):
    """A mutation targeted a segment that is already being mutated"""

    status_code = 409


class RemoteOperationError(StickerGridError):
    """The AI backend returned a failure or was unreachable"""

    status_code = 502


class SegmentNotFoundError(StickerGridError):
    status_code = 404
