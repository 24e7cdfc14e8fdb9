"""
logging_setup.py
~~~~~~~~~~~~~~~~

Logging configuration shared by the API server and the command line driver.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging

    Args:
        level: Level name overriding the LOG_LEVEL environment variable
    """
    log_level_str = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    # In production, silence noisy third-party logs but keep our logs visible
    if is_production:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('matplotlib').setLevel(logging.WARNING)
        logging.getLogger('sigmanet').setLevel(logging.INFO)
    else:
        logging.getLogger('sigmanet').setLevel(log_level)
