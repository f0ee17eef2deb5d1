"""
Two kinds of waiting.

``poll_until`` is for steps that converge on their own (instance boot, SSH
coming up): fixed attempt count, fixed delay, and the caller decides what
exhausting the budget means.

``wait_for_operator`` is for steps only a human can unblock (linking a
billing account in a browser): no timeout, re-check on every prompt, stop
only when the condition holds or the operator cancels.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .errors import OperatorCancelled

logger = logging.getLogger("algora1.polling")


def poll_until(
    check: Callable[[], bool],
    attempts: int,
    delay: float,
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call ``check`` until it returns True or the attempts run out.

    Args:
        check: Zero-arg predicate. Exceptions are not caught.
        attempts: Maximum number of calls to ``check``.
        delay: Seconds to sleep between attempts (not after the last).
        label: Name used in debug logging.
        sleep: Sleep function, replaceable in tests.

    Returns:
        True if ``check`` succeeded within the budget.
    """
    for attempt in range(1, attempts + 1):
        if check():
            logger.debug("%s converged after %d attempt(s)", label or "poll", attempt)
            return True
        if attempt < attempts:
            sleep(delay)
    logger.warning("%s did not converge after %d attempts", label or "poll", attempts)
    return False


def wait_for_operator(
    check: Callable[[], bool],
    ask_recheck: Callable[[str, str], bool],
    title: str,
    instructions: str,
) -> int:
    """Block until ``check`` passes, re-checking after each operator prompt.

    Args:
        check: Predicate that reads live state.
        ask_recheck: Shows ``title``/``instructions`` and returns True to
            re-check or False to cancel.
        title: Short heading for the prompt.
        instructions: What the operator has to do outside this tool.

    Returns:
        How many operator prompts were needed (0 if already satisfied).

    Raises:
        OperatorCancelled: If the operator declines to re-check.
    """
    prompts = 0
    while not check():
        prompts += 1
        logger.info("Waiting on operator: %s (prompt %d)", title, prompts)
        if not ask_recheck(title, instructions):
            raise OperatorCancelled(f"{title}: cancelled by operator")
    return prompts
