# core/exceptions.py


class PicturePrunerError(Exception):
    """Base class for engine errors"""


class UnsupportedImage(PicturePrunerError):
    """The image decoder could not process a file"""

    def __init__(self, path, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        message = f"Unsupported image: {self.path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidInput(PicturePrunerError, ValueError):
    """Caller passed values the engine cannot work with"""


class AnalysisCancelled(PicturePrunerError):
    """A batch pass was aborted before producing results"""
