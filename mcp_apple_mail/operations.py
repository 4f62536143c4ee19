"""
Bulk operations on messages identified by Message-ID.

Mail's numeric message ids change when a message moves, so bulk operations
are keyed by the protocol Message-ID. The host walks the scope newest-first
with a working set of identifiers and stops once every identifier has been
seen. One missing or failing identifier never aborts the others.
"""

import logging
from collections.abc import Iterable
from typing import Any, Literal

from mcp_apple_mail.bridge import JXABridge
from mcp_apple_mail.config import Settings
from mcp_apple_mail.jxa import BulkApply
from mcp_apple_mail.models import MailboxRef, OperationResult
from mcp_apple_mail.search import in_scope, inbox_targets, list_mailboxes

logger = logging.getLogger(__name__)

Action = Literal['mark_read', 'delete', 'move']

_FAILURE_MESSAGES = {
    'mark_read': 'Failed to mark message {id} as read: {error}',
    'delete': 'Failed to delete message {id}: {error}',
    'move': 'Failed to move message {id}: {error}',
}


def missing_message_error(message_id: str) -> str:
    return f'Could not find messages: {message_id}'


def resolve_destination(
    refs: list[MailboxRef], target_mailbox: str, target_account: str | None = None
) -> MailboxRef | None:
    """
    Find the destination mailbox of a move.

    Args:
        refs: Mailboxes to choose from, in preference order
        target_mailbox: Exact mailbox name
        target_account: Account holding the mailbox (optional)

    Returns:
        The first matching mailbox, or None
    """
    for ref in refs:
        if ref.name == target_mailbox and (target_account is None or ref.account_name == target_account):
            return ref
    return None


def collect_result(outcome: dict[str, Any], action: Action) -> OperationResult:
    """
    Turn the host's bulk outcome into an OperationResult.

    The outcome holds ``succeeded`` identifiers, ``failures`` as
    ``{message_id, error}`` records and ``missing`` identifiers.
    """
    errors = [
        _FAILURE_MESSAGES[action].format(id=failure['message_id'], error=failure['error'])
        for failure in outcome.get('failures', [])
    ]
    errors.extend(missing_message_error(message_id) for message_id in outcome.get('missing', []))
    return OperationResult(succeeded_count=len(outcome.get('succeeded', [])), errors=errors)


def _unique(message_ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(message_ids))


async def _apply(
    bridge: JXABridge,
    targets: list[MailboxRef],
    message_ids: list[str],
    action: Action,
    destination: MailboxRef | None = None,
) -> OperationResult:
    if not targets:
        return OperationResult(
            succeeded_count=0, errors=[missing_message_error(message_id) for message_id in message_ids]
        )

    outcome = await bridge.run(
        BulkApply(targets=targets, message_ids=message_ids, action=action, destination=destination)
    )
    result = collect_result(outcome, action)
    logger.info(
        'Bulk %s: %d of %d succeeded across %d mailboxes',
        action,
        result.succeeded_count,
        len(message_ids),
        len(targets),
    )
    return result


async def _scope(bridge: JXABridge, settings: Settings, inbox_only: bool) -> list[MailboxRef]:
    refs = in_scope(await list_mailboxes(bridge), settings)
    return inbox_targets(refs) if inbox_only else refs


async def mark_as_read(
    bridge: JXABridge, message_ids: list[str], settings: Settings, inbox_only: bool = False
) -> OperationResult:
    """
    Mark emails as read. Already-read messages count as succeeded.

    Args:
        bridge: JXA bridge
        message_ids: Message-IDs to mark
        settings: Server settings
        inbox_only: Only look in each account's inbox

    Returns:
        OperationResult with the number marked and one error per unresolved id
    """
    message_ids = _unique(message_ids)
    if not message_ids:
        return OperationResult(succeeded_count=0, errors=[])
    return await _apply(bridge, await _scope(bridge, settings, inbox_only), message_ids, 'mark_read')


async def delete_emails(
    bridge: JXABridge, message_ids: list[str], settings: Settings, inbox_only: bool = False
) -> OperationResult:
    """
    Delete emails.

    Args:
        bridge: JXA bridge
        message_ids: Message-IDs to delete
        settings: Server settings
        inbox_only: Only look in each account's inbox

    Returns:
        OperationResult with the number deleted and one error per unresolved id
    """
    message_ids = _unique(message_ids)
    if not message_ids:
        return OperationResult(succeeded_count=0, errors=[])
    return await _apply(bridge, await _scope(bridge, settings, inbox_only), message_ids, 'delete')


async def move_emails(
    bridge: JXABridge,
    message_ids: list[str],
    target_mailbox: str,
    settings: Settings,
    target_account: str | None = None,
    inbox_only: bool = False,
) -> OperationResult:
    """
    Move emails to another mailbox.

    The destination is resolved before any message is looked at; when it
    cannot be found nothing is scanned and a single error is returned.
    Messages already in the destination count as moved.

    Args:
        bridge: JXA bridge
        message_ids: Message-IDs to move
        target_mailbox: Destination mailbox name
        settings: Server settings
        target_account: Account of the destination mailbox (optional)
        inbox_only: Only look for the messages in each account's inbox

    Returns:
        OperationResult with the number moved and the errors
    """
    message_ids = _unique(message_ids)
    all_refs = await list_mailboxes(bridge)
    enabled_refs = in_scope(all_refs, settings)

    # Prefer destinations in enabled accounts, but honour an explicit account
    destination = resolve_destination(enabled_refs, target_mailbox, target_account) or resolve_destination(
        all_refs, target_mailbox, target_account
    )
    if destination is None:
        error = f"Target mailbox '{target_mailbox}' not found"
        if target_account:
            error += f" in account '{target_account}'"
        logger.warning(error)
        return OperationResult(succeeded_count=0, errors=[error])

    if not message_ids:
        return OperationResult(succeeded_count=0, errors=[])

    targets = inbox_targets(enabled_refs) if inbox_only else enabled_refs
    return await _apply(bridge, targets, message_ids, 'move', destination=destination)
