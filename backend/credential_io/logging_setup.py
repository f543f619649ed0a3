import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    logger = logging.getLogger()
    if logger.handlers:  # already configured by the host process
        return
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s :: %(message)s"))
    logger.addHandler(handler)
