import os
import logging
from datetime import datetime

LOGGER_NAME = 'snow_attachments'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(log_root='.', prefix='attachment_download', console=True):
    """Create a timestamped log folder with a general log, an error log and console output.

    Returns the log folder path.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_dir = os.path.join(log_root, f"{prefix}_logs_{timestamp}")
    os.makedirs(log_dir, exist_ok=True)

    # Drop handlers left over from a previous setup
    for handler in list(logger.handlers):
        if getattr(handler, '_snow_attachments', False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    general_handler = logging.FileHandler(os.path.join(log_dir, f"{prefix}_general_{timestamp}.log"), encoding='utf-8')
    general_handler.setLevel(logging.INFO)

    error_handler = logging.FileHandler(os.path.join(log_dir, f"{prefix}_error_{timestamp}.log"), encoding='utf-8')
    error_handler.setLevel(logging.ERROR)

    handlers = [general_handler, error_handler]
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        handlers.append(stream_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._snow_attachments = True
        logger.addHandler(handler)

    logger.setLevel(logging.INFO)
    return log_dir
