import logging

from cryptboot.utils.logging import setup_logging


def test_debug_only_affects_cryptboot_logger():
    try:
        logger = setup_logging(debug=True)
        assert logger.name == "cryptboot"
        assert logger.level == logging.DEBUG

        assert setup_logging(debug=False).level == logging.INFO
    finally:
        logging.getLogger("cryptboot").setLevel(logging.NOTSET)
