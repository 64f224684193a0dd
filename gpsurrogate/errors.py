class GPSurrogateError(Exception):
    """Base class of all errors raised by `gpsurrogate`."""


class ArgumentError(GPSurrogateError, ValueError):
    """Invalid input, e.g. points and observations of different lengths."""


class ShapeError(GPSurrogateError, ValueError):
    """Bounds and values (or a flat vector and its unflattener) have incompatible shapes."""


class NoCandidatesError(GPSurrogateError, ValueError):
    """An optimization prior did not yield any initial points."""


class ConvergenceError(GPSurrogateError, RuntimeError):
    """Local optimization encountered a non-finite objective or gradient."""
