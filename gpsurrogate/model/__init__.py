from gpsurrogate.model.surrogate import GPSurrogate

__all__ = ["GPSurrogate"]
