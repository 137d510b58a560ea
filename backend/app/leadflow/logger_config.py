import logging
from typing import Optional

import uvicorn.logging

FORMAT = "%(levelprefix)s %(asctime)s [%(threadName)s] [%(name)s] %(message)s"


def get_logger(name: str = __name__, level: Optional[int] = None) -> logging.Logger:
    """Return a logger writing uvicorn-style lines to stderr.

    Handlers are attached once per logger name, so modules can call this at
    import time without duplicating output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = uvicorn.logging.DefaultFormatter(
            FORMAT, datefmt="%Y-%m-%d %H:%M:%S", use_colors=False
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
