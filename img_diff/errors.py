"""Exception types raised by the matching engine and its loaders."""


class ImgDiffError(Exception):
    """Base class for every failure reported by img-diff."""


class DecodeFailure(ImgDiffError):
    """The source file could not be read or decoded as an image."""


class SizeMismatch(ImgDiffError, ValueError):
    """Two grids or regions that must share dimensions do not."""


class BadRectangle(ImgDiffError, ValueError):
    """A rectangle does not fit inside the grid it refers to."""


class OutOfBounds(ImgDiffError, IndexError):
    """A pixel coordinate lies outside the grid."""


class CacheWriteFailure(ImgDiffError, OSError):
    """The pixel cache could not be written."""


class InvalidArgument(ImgDiffError, ValueError):
    """A user supplied option could not be parsed."""
