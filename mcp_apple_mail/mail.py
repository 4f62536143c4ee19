"""Account, mailbox and message retrieval plus sending, on top of the JXA bridge."""

import logging

from mcp_apple_mail.bridge import JXABridge
from mcp_apple_mail.config import Settings
from mcp_apple_mail.hierarchy import build_hierarchy
from mcp_apple_mail.jxa import ListAccounts, MailboxStats, ScanMessages, SendMail
from mcp_apple_mail.models import Account, EmailMessage, MailboxHierarchy, MailboxRecord, SendMailRequest
from mcp_apple_mail.search import (
    in_scope,
    list_mailboxes,
    merge_newest_first,
    prioritize,
    scan,
    sort_newest_first,
)

logger = logging.getLogger(__name__)


def split_addresses(value: str | None) -> list[str]:
    """Split a comma-separated address field, dropping blanks."""
    if not value:
        return []
    return [address.strip() for address in value.split(',') if address.strip()]


async def get_accounts(bridge: JXABridge) -> list[Account]:
    """
    Get all accounts configured in Mail.

    Args:
        bridge: JXA bridge

    Returns:
        List of accounts, in Mail's order
    """
    rows = await bridge.run(ListAccounts())
    return [Account.model_validate(row) for row in rows]


async def get_mailbox_hierarchy(bridge: JXABridge, account_name: str, settings: Settings) -> MailboxHierarchy:
    """
    Get the mailbox tree of one account.

    Unread counts of mailboxes larger than settings.unread_sample_size are
    extrapolated from a sample and flagged as estimates.

    Args:
        bridge: JXA bridge
        account_name: Account name
        settings: Server settings

    Returns:
        MailboxHierarchy for the account

    Raises:
        HostExecutionError: The account does not exist
    """
    rows = await bridge.run(
        MailboxStats(account=account_name, sample_size=settings.unread_sample_size),
        timeout=settings.hierarchy_timeout,
    )
    records = [MailboxRecord.model_validate(row) for row in rows]
    return build_hierarchy(records, account_name)


async def get_unread_mails(bridge: JXABridge, limit: int, settings: Settings) -> list[EmailMessage]:
    """
    Get unread emails, checking priority mailboxes first.

    Each of the first settings.max_unread_mailboxes_check mailboxes is scanned
    in full, newest first, until limit unread messages are collected.

    Args:
        bridge: JXA bridge
        limit: Maximum number of emails
        settings: Server settings

    Returns:
        Unread messages, newest first
    """
    refs = prioritize(in_scope(await list_mailboxes(bridge), settings), settings.priority_mailboxes)
    targets = refs[: settings.max_unread_mailboxes_check]

    messages = await scan(
        bridge,
        ScanMessages(
            targets=targets,
            unread_only=True,
            stop_after=limit,
            content_length=settings.content_preview_length,
        ),
    )
    return merge_newest_first(messages, limit)


async def get_latest_mails(
    bridge: JXABridge, account_name: str, limit: int, settings: Settings
) -> list[EmailMessage]:
    """
    Get the latest emails of one account.

    The most recent messages of the account's priority mailboxes (then the
    others, up to settings.max_mailboxes_check mailboxes) are collected and
    sorted by received date.

    Args:
        bridge: JXA bridge
        account_name: Account name
        limit: Number of emails to return
        settings: Server settings

    Returns:
        Messages sorted newest first
    """
    refs = await list_mailboxes(bridge, accounts=[account_name])
    if not refs:
        logger.info('No mailboxes found for account %r', account_name)
        return []

    targets = prioritize(refs, settings.priority_mailboxes)[: settings.max_mailboxes_check]
    messages = await scan(
        bridge,
        ScanMessages(
            targets=targets,
            per_mailbox=settings.messages_per_mailbox_check,
            content_length=settings.latest_content_length,
        ),
    )
    return sort_newest_first(messages)[:limit]


async def send_mail(bridge: JXABridge, request: SendMailRequest) -> str:
    """
    Compose and send an email.

    Args:
        bridge: JXA bridge
        request: Message to send; to/cc/bcc may be comma-separated

    Returns:
        Confirmation text from Mail

    Raises:
        HostExecutionError: The sending account is unknown or has no address
    """
    result = await bridge.run(
        SendMail(
            to=split_addresses(request.to),
            cc=split_addresses(request.cc),
            bcc=split_addresses(request.bcc),
            subject=request.subject,
            body=request.body,
            account_name=request.account_name,
        )
    )
    return str(result)
