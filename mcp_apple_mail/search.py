"""
Scope-limited search across accounts and mailboxes.

Searching every message of every mailbox makes Mail unresponsive, so each
search first picks a bounded set of mailboxes from a cheap enumeration and then
asks the host for a single newest-first scan over that plan. The host stops as
soon as enough matches are collected.

Matching is a case-insensitive substring test on subject and sender.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from mcp_apple_mail.bridge import JXABridge
from mcp_apple_mail.config import Settings, is_account_enabled
from mcp_apple_mail.jxa import ListMailboxes, ScanMessages
from mcp_apple_mail.models import EmailMessage, MailboxRef, SearchScope

logger = logging.getLogger(__name__)

INBOX_NAME = 'INBOX'
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


async def list_mailboxes(bridge: JXABridge, accounts: list[str] | None = None) -> list[MailboxRef]:
    """
    Enumerate mailboxes in Mail's account order.

    Args:
        bridge: JXA bridge
        accounts: Restrict to these account names (optional)

    Returns:
        One MailboxRef per mailbox
    """
    rows = await bridge.run(ListMailboxes(accounts=accounts))
    return [MailboxRef.model_validate(row) for row in rows]


def in_scope(refs: Iterable[MailboxRef], settings: Settings) -> list[MailboxRef]:
    """Drop mailboxes of accounts excluded by the account filters."""
    return [ref for ref in refs if is_account_enabled(ref.account_name, settings)]


def group_by_account(refs: Iterable[MailboxRef]) -> dict[str, list[MailboxRef]]:
    groups: dict[str, list[MailboxRef]] = {}
    for ref in refs:
        groups.setdefault(ref.account_name, []).append(ref)
    return groups


def is_priority_mailbox(name: str, priority_names: Iterable[str]) -> bool:
    """Case-insensitive exact or substring match against the priority names."""
    upper = name.upper()
    return any(upper == p.upper() or p.upper() in upper for p in priority_names)


def is_inbox(name: str) -> bool:
    return INBOX_NAME in name.upper()


def prioritize(refs: Iterable[MailboxRef], priority_names: list[str]) -> list[MailboxRef]:
    """Order priority mailboxes first, keeping Mail's order within each group."""
    refs = list(refs)
    priority = [ref for ref in refs if is_priority_mailbox(ref.name, priority_names)]
    others = [ref for ref in refs if not is_priority_mailbox(ref.name, priority_names)]
    return priority + others


def priority_targets(refs: Iterable[MailboxRef], scope: SearchScope) -> list[MailboxRef]:
    """Priority mailboxes of the first ``scope.account_limit`` accounts."""
    targets = []
    for account_refs in list(group_by_account(refs).values())[: scope.account_limit]:
        targets.extend(ref for ref in account_refs if is_priority_mailbox(ref.name, scope.priority_names))
    return targets[: scope.mailbox_scan_limit]


def inbox_targets(refs: Iterable[MailboxRef]) -> list[MailboxRef]:
    """
    One inbox per account.

    An exact ``INBOX`` (any case) wins over names that merely contain it.
    """
    targets = []
    for account_refs in group_by_account(refs).values():
        exact = [ref for ref in account_refs if ref.name.upper() == INBOX_NAME]
        loose = [ref for ref in account_refs if is_inbox(ref.name)]
        if exact or loose:
            targets.append((exact or loose)[0])
    return targets


def received_at(message: EmailMessage) -> datetime:
    try:
        received = datetime.fromisoformat(message.date_received)
    except ValueError:
        return _EPOCH
    if received.tzinfo is None:
        received = received.replace(tzinfo=timezone.utc)
    return received


def sort_newest_first(messages: list[EmailMessage]) -> list[EmailMessage]:
    return sorted(messages, key=received_at, reverse=True)


def merge_newest_first(messages: list[EmailMessage], limit: int) -> list[EmailMessage]:
    """
    Truncate scan results to ``limit``.

    A scan of a single mailbox is already newest-first; results drawn from
    several mailboxes are sorted by received date first.
    """
    sources = {(message.account_name, message.mailbox) for message in messages}
    if len(sources) > 1:
        messages = sort_newest_first(messages)
    return messages[:limit]


async def scan(bridge: JXABridge, command: ScanMessages) -> list[EmailMessage]:
    """Run a scan plan and decode the collected messages."""
    if not command.targets:
        return []
    rows = await bridge.run(command)
    return [EmailMessage.model_validate(row) for row in rows]


async def search_mails(
    bridge: JXABridge,
    search_term: str,
    limit: int,
    settings: Settings,
    scope: SearchScope | None = None,
) -> list[EmailMessage]:
    """
    Search priority mailboxes (inbox, sent, drafts...) of the first few accounts.

    Message content is omitted.

    Args:
        bridge: JXA bridge
        search_term: Text to look for in subject or sender
        limit: Maximum number of results
        settings: Server settings
        scope: Search bounds (defaults to settings.search_scope())

    Returns:
        Matching messages, newest first
    """
    scope = scope or settings.search_scope()
    refs = in_scope(await list_mailboxes(bridge), settings)
    targets = priority_targets(refs, scope)
    logger.info('Searching %d priority mailboxes for %r', len(targets), search_term)

    messages = await scan(
        bridge,
        ScanMessages(
            targets=targets,
            term=search_term.lower(),
            per_mailbox=scope.messages_per_mailbox,
            stop_after=limit,
            content_length=0,
            recipient_limit=3,
        ),
    )
    return merge_newest_first(messages, limit)


async def search_inbox(
    bridge: JXABridge,
    search_term: str,
    limit: int,
    settings: Settings,
) -> list[EmailMessage]:
    """
    Search the inbox of every enabled account, with a short content preview.

    Args:
        bridge: JXA bridge
        search_term: Text to look for in subject or sender
        limit: Maximum number of results
        settings: Server settings

    Returns:
        Matching messages, newest first
    """
    refs = in_scope(await list_mailboxes(bridge), settings)
    targets = inbox_targets(refs)
    logger.info('Searching %d inboxes for %r', len(targets), search_term)

    messages = await scan(
        bridge,
        ScanMessages(
            targets=targets,
            term=search_term.lower(),
            per_mailbox=settings.inbox_scan_depth,
            stop_after=limit,
            content_length=settings.content_preview_length,
        ),
    )
    return merge_newest_first(messages, limit)


async def search_in_mailbox(
    bridge: JXABridge,
    mailbox_name: str,
    search_term: str,
    limit: int,
    settings: Settings,
    account_name: str | None = None,
) -> list[EmailMessage]:
    """
    Search one named mailbox.

    Without an account name the first mailbox with that name in an enabled
    account is used. An unknown mailbox yields no results.

    Args:
        bridge: JXA bridge
        mailbox_name: Exact mailbox name
        search_term: Text to look for in subject or sender
        limit: Maximum number of results
        settings: Server settings
        account_name: Account holding the mailbox (optional)

    Returns:
        Matching messages, newest first
    """
    if account_name:
        refs = await list_mailboxes(bridge, accounts=[account_name])
    else:
        refs = in_scope(await list_mailboxes(bridge), settings)

    target = next((ref for ref in refs if ref.name == mailbox_name), None)
    if target is None:
        logger.info('Mailbox %r not found%s', mailbox_name, f' in account {account_name!r}' if account_name else '')
        return []

    messages = await scan(
        bridge,
        ScanMessages(
            targets=[target],
            term=search_term.lower(),
            per_mailbox=settings.messages_per_search,
            stop_after=limit,
            content_length=0,
        ),
    )
    return merge_newest_first(messages, limit)
