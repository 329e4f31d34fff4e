import logging

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                       format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

def get_logger(name="bundle_rollout"):
    return logging.getLogger(f"bundle_rollout.{name}" if name != "bundle_rollout" else name)
