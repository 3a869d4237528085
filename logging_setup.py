import logging

from config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(settings: Settings):
    """Console output plus a general log file and an error-only file."""
    global _configured
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    logfile = logging.FileHandler(settings.log_file)
    logfile.setFormatter(formatter)

    errors = logging.FileHandler(settings.exception_log_file)
    errors.setLevel(logging.ERROR)
    errors.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(settings.log_level)
    for handler in (console, logfile, errors):
        root.addHandler(handler)

    _configured = True
