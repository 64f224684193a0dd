import logging
import jax

_logger = logging.getLogger("gpsurrogate")
if not _logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    _logger.addHandler(_handler)
_logger.setLevel(logging.WARNING)


def get_logger() -> logging.Logger:
    """Package logger. Module loggers are its children."""
    return _logger


def set_log_level(level):
    _logger.setLevel(level)


def enable_x64(enable: bool = True):
    """Toggles double precision in jax. Enabled when `gpsurrogate` is imported."""
    jax.config.update("jax_enable_x64", enable)
