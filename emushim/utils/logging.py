import logging
import queue
from typing import Optional

log_queue = queue.Queue()
log_history = []

class QueueHandler(logging.Handler):
    """A logging handler that mirrors formatted records into a queue for UI consumers."""
    def __init__(self, log_queue):
        super().__init__()
        self.log_queue = log_queue

    def emit(self, record):
        message = self.format(record)
        log_history.append(message)
        self.log_queue.put(message)

def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None):
    """Configures the root logger for console, optional file and queue output."""
    logger = logging.getLogger()
    logger.setLevel(level)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    # Console handler
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Queue handler for anything tailing the log
    queue_handler = QueueHandler(log_queue)
    queue_handler.setFormatter(formatter)
    logger.addHandler(queue_handler)
