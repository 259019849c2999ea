"""
Lazily loaded libvips handle.

pyvips loads the libvips shared library at import time, which is slow and can
fail on hosts without libvips. The module is imported on first use and the
handle is kept for the life of the process.
"""
import threading

from .exceptions import BackendUnavailableError
from .log import get_logger

logger = get_logger("vips")

_vips = None
_vips_lock = threading.Lock()


def get_vips():
    """Return the pyvips module, importing it on first call.

    Raises:
        BackendUnavailableError: if pyvips or libvips cannot be loaded.
    """
    global _vips
    if _vips is not None:
        return _vips
    with _vips_lock:
        if _vips is None:
            try:
                import pyvips
            except (ImportError, OSError) as e:
                raise BackendUnavailableError(f"libvips is not available: {e}") from e
            _vips = pyvips
            logger.info("libvips backend initialized (libvips %s.%s.%s)",
                        pyvips.version(0), pyvips.version(1), pyvips.version(2))
    return _vips


def reset_vips():
    """Forget the cached handle. Used by tests."""
    global _vips
    with _vips_lock:
        _vips = None
