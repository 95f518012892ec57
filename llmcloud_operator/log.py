import logging
import os
import socket
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] [%(hostname)s] [%(pod_name)s] %(message)s"

_factory_installed = False


def configure_logging(level: str = "INFO") -> None:
    """Configure logging with hostname and pod name for better traceability"""
    global _factory_installed

    hostname = socket.gethostname()
    pod_name = os.environ.get("POD_NAME", "unknown")

    # Add custom fields to the log record, once per process
    if not _factory_installed:
        old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.hostname = hostname
            record.pod_name = pod_name
            return record

        logging.setLogRecordFactory(record_factory)
        _factory_installed = True

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.info(f"Logging configured at {level.upper()} level")
