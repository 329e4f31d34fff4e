import time

from .logger import get_logger

logger = get_logger("polling")


def block(max_wait_ms, predicate, action, retry_wait_ms):
    """Run "action", then keep re-running it every "retry_wait_ms" while "predicate" holds and "max_wait_ms" has not passed

    Nothing is returned and nothing is raised on timeout: "action" and "predicate"
    share state with the caller, who decides what running out of time means.
    """
    if retry_wait_ms < 1:
        raise ValueError(f"retry_wait_ms < 1: {retry_wait_ms}")
    logger.info(f"Blocking for at most {max_wait_ms}ms")

    stop_time = time.monotonic() + max_wait_ms / 1000.0

    action()
    while predicate() and time.monotonic() <= stop_time:
        logger.debug(f"Trying again after waiting for {retry_wait_ms}ms")
        time.sleep(retry_wait_ms / 1000.0)
        action()
