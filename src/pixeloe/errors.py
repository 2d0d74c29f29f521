"""Exception types raised by the pixelization pipeline"""


class PixelizeError(Exception):
    """Base class for all pipeline errors"""


class ConfigurationError(PixelizeError, ValueError):
    """Invalid option, dimension or kernel; the call fails with no partial result"""


class BackendError(PixelizeError, RuntimeError):
    """An accelerated backend failed; callers fall back to the CPU implementation"""
