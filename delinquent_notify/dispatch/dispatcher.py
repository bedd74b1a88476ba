from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed

from ..models.dispatch_result import BatchDispatchReport, DispatchOutcome, ResultKind
from ..services.progress import DispatchProgress
from .targets import NotificationTarget, validate_batch
from .transport import Transport

logger = logging.getLogger(__name__)

"""Batch dispatch of notifications.

validate_batch() runs first and may reject the whole batch. After that every
target gets exactly one attempt; a failing or slow attempt never stops the
others. Outcomes land in per-target slots and are combined into the report
only once all attempts have settled.
"""

__all__ = [
    "dispatch",
]


def _attempt(transport: Transport, target: NotificationTarget, reply_to: str) -> DispatchOutcome:
    recipient = target.recipient or ""
    try:
        response = transport.send(target, reply_to)
    except Exception as e:
        # ネットワーク / タイムアウト等は当該ターゲットのみ失敗扱い
        logger.warning(f"send failed identity={target.identity} recipient={recipient}: {e}")
        return DispatchOutcome(
            record_identity=target.identity,
            recipient_address=recipient,
            result_kind=ResultKind.FAILED,
            failure_detail=str(e) or type(e).__name__,
        )
    if response.ok:
        return DispatchOutcome(
            record_identity=target.identity,
            recipient_address=recipient,
            result_kind=ResultKind.SENT,
            provider_reference=response.provider_reference,
        )
    logger.warning(f"provider rejected identity={target.identity} recipient={recipient}: {response.error_detail}")
    return DispatchOutcome(
        record_identity=target.identity,
        recipient_address=recipient,
        result_kind=ResultKind.FAILED,
        failure_detail=response.error_detail,
    )


def dispatch(
    targets: Iterable[NotificationTarget],
    transport: Transport,
    reply_to: str,
    *,
    max_workers: int = 1,
) -> BatchDispatchReport:
    """Send one notification per target and collect the outcomes.

    Args:
        targets: Per-member or per-agency targets
        transport: Object with send(target, reply_to) -> TransportResponse
        reply_to: Reply-to address put on every notification
        max_workers: >1 fans attempts out over a bounded thread pool

    Raises:
        DispatchValidationError: before any send when a target is invalid
    """
    target_list = list(targets)
    validate_batch(target_list, reply_to)

    slots: list[DispatchOutcome | None] = [None] * len(target_list)
    with DispatchProgress(len(target_list)) as progress:
        if max_workers <= 1:
            for i, target in enumerate(target_list):
                slots[i] = outcome = _attempt(transport, target, reply_to)
                progress.update(outcome.sent)
        else:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dispatch") as executor:
                futures = {
                    executor.submit(_attempt, transport, target, reply_to): i
                    for i, target in enumerate(target_list)
                }
                for future in as_completed(futures):
                    outcome = future.result()
                    slots[futures[future]] = outcome
                    progress.update(outcome.sent)

    report = BatchDispatchReport.from_outcomes([o for o in slots if o is not None])
    logger.info(report.message)
    return report
