import logging
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level=logging.INFO, log_dir='logs'):
    """Console output plus notifications.log (INFO+) and critical-errors.log (ERROR+)."""
    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    notifications = logging.FileHandler(log_path / 'notifications.log')
    notifications.setLevel(logging.INFO)
    critical = logging.FileHandler(log_path / 'critical-errors.log')
    critical.setLevel(logging.ERROR)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            notifications,
            critical,
        ],
        force=True,
    )
    # pika is chatty at INFO on every connection state change
    logging.getLogger('pika').setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
