"""
Logging setup for the command line.

Only the cryptboot logger follows --debug; the root logger stays at WARNING.
"""
import logging
import sys

DEBUG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
USER_FORMAT = '%(levelname)s: %(message)s'


def setup_logging(debug: bool = False) -> logging.Logger:
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=logging.WARNING,
        format=DEBUG_FORMAT if debug else USER_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr
    )

    logger = logging.getLogger('cryptboot')
    logger.setLevel(level)
    return logger
