"""Order completion verification.

Polling is expressed as a pure decision function, :func:`next_action`, so the
state machine can be tested without time passing. :func:`verify_order_ended`
drives it against an exchange with an injectable sleep.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Awaitable, Callable

from capweight.connectors.base import BaseExchange
from capweight.logging import get_logger
from capweight.models import Order

logger = get_logger("rebalancer.verification")

SleepFn = Callable[[float], Awaitable[None]]


class VerifyAction(str, enum.Enum):
    """Next step while waiting for an order to end."""

    POLL = "POLL"
    CANCEL = "CANCEL"
    DONE = "DONE"


def next_action(
    order: Order,
    polls: int,
    max_polls: int = 60,
    cancel_on_timeout: bool = True,
) -> VerifyAction:
    """Decide what to do next with a submitted order.

    Args:
        order: Latest known state of the order.
        polls: Number of polls already performed.
        max_polls: Poll budget.
        cancel_on_timeout: Whether to cancel once the budget is spent.

    Returns:
        ``DONE`` if the order ended, has no ID to poll, or timed out without
        cancellation; ``CANCEL`` if it timed out and should be cancelled;
        ``POLL`` otherwise.
    """
    if order.id is None or order.has_ended:
        return VerifyAction.DONE
    if polls < max_polls:
        return VerifyAction.POLL
    return VerifyAction.CANCEL if cancel_on_timeout else VerifyAction.DONE


async def verify_order_ended(
    exchange: BaseExchange,
    order: Order,
    cancel_on_timeout: bool = True,
    max_polls: int = 60,
    poll_interval: float = 1.0,
    sleep: SleepFn = asyncio.sleep,
    on_cancel: Callable[[Order], None] | None = None,
) -> Order:
    """Poll ``order`` until it ends, cancelling it if the poll budget runs out.

    A poll that returns nothing keeps the last known state. A failed
    cancellation is not retried.

    Args:
        exchange: Exchange the order was placed on.
        order: The submitted order.
        cancel_on_timeout: Cancel the order if it is still open after
            ``max_polls`` polls.
        max_polls: Poll budget.
        poll_interval: Seconds to wait before each poll.
        sleep: Awaitable sleep, replaceable in tests.
        on_cancel: Called with the order when a timeout cancellation is sent.

    Returns:
        The latest known state of the order.
    """
    polls = 0
    while True:
        action = next_action(order, polls, max_polls, cancel_on_timeout)

        if action is VerifyAction.DONE:
            if order.id is not None and not order.has_ended:
                logger.warning("order_poll_timeout", order_id=order.id, market=str(order.market))
            return order

        if action is VerifyAction.CANCEL:
            logger.warning("order_cancel_on_timeout", order_id=order.id, market=str(order.market))
            cancelled = await exchange.cancel_order(order.id, order.market)
            if on_cancel is not None:
                on_cancel(order)
            if cancelled is None:
                logger.error("order_cancel_failed", order_id=order.id, market=str(order.market))
            return cancelled if cancelled is not None else order

        await sleep(poll_interval)
        polled = await exchange.get_order(order.id, order.market)
        if polled is not None:
            order = polled
        polls += 1
