import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the portal's logger hierarchy."""
    logger = logging.getLogger("alumni_portal")
    logger.setLevel(level)
    if any(getattr(h, "_alumni_portal", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._alumni_portal = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
