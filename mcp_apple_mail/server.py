"""Apple Mail MCP Server Implementation backed by JavaScript for Automation."""

import logging
from contextlib import asynccontextmanager

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field

from mcp_apple_mail.bridge import JXABridge
from mcp_apple_mail.config import filter_accounts, settings
from mcp_apple_mail.dual_logger import DualLogger
from mcp_apple_mail.errors import BridgeError
from mcp_apple_mail.helpers import (
    format_accounts_as_markdown,
    format_email_summary,
    format_hierarchy_as_markdown,
    preview,
)
from mcp_apple_mail.mail import (
    get_accounts,
    get_latest_mails,
    get_mailbox_hierarchy,
    get_unread_mails,
    send_mail,
)
from mcp_apple_mail.models import (
    AccountStatus,
    EmailMessage,
    EmailSentResult,
    MailboxHierarchy,
    MoveResult,
    OperationResult,
    SendMailRequest,
)
from mcp_apple_mail.operations import delete_emails, mark_as_read, move_emails
from mcp_apple_mail.search import search_in_mailbox, search_inbox, search_mails

# Global variables for resource management
_bridge: JXABridge | None = None

LIMIT_DESCRIPTION = 'Maximum number of results'


def get_bridge() -> JXABridge:
    global _bridge
    if _bridge is None:
        _bridge = JXABridge(settings)
    return _bridge


@asynccontextmanager
async def lifespan(server):
    """Create the JXA bridge for the lifetime of the server."""
    global _bridge
    _bridge = JXABridge(settings)
    try:
        yield {}
    finally:
        _bridge = None


mcp = FastMCP(
    'Apple Mail MCP Server',
    instructions=(
        'Access and interact with Apple Mail. '
        'You can list accounts and mailboxes, read and search emails, send mail, '
        'and mark, delete or move emails by their Message-ID.'
    ),
    lifespan=lifespan,
)


async def _failed(logger: DualLogger, action: str, error: BridgeError) -> ToolError:
    await logger.error(f'Failed to {action}: {error}')
    return ToolError(str(error))


async def _account_statuses() -> list[AccountStatus]:
    accounts = await get_accounts(get_bridge())
    enabled = {account.name for account in filter_accounts(accounts, settings)}
    return [
        AccountStatus(
            **account.model_dump(),
            config_status='enabled' if account.name in enabled else 'disabled',
        )
        for account in accounts
    ]


# Resources
@mcp.resource('applemail://accounts')
async def accounts_resource() -> str:
    """
    List the accounts configured in Mail.

    Returns:
        Markdown list of accounts with their configuration status
    """
    return format_accounts_as_markdown(await _account_statuses())


@mcp.resource('applemail://accounts/{account_name}/mailboxes')
async def mailboxes_resource(account_name: str) -> str:
    """
    Get the mailbox tree of an account.

    Args:
        account_name: Name of the Mail account

    Returns:
        Markdown formatted mailbox hierarchy
    """
    hierarchy = await get_mailbox_hierarchy(get_bridge(), account_name, settings)
    return format_hierarchy_as_markdown(hierarchy, account_name)


@mcp.resource('applemail://accounts/{account_name}/latest')
async def latest_resource(account_name: str) -> str:
    """
    Get the latest emails of an account.

    Args:
        account_name: Name of the Mail account

    Returns:
        Markdown summaries of the most recent messages
    """
    emails = await get_latest_mails(get_bridge(), account_name, settings.default_limit, settings)
    if not emails:
        return f'# Latest Emails: {account_name}\n\nNo emails found.\n'
    return f'# Latest Emails: {account_name}\n\n' + '\n'.join(format_email_summary(email) for email in emails)


# Tools
@mcp.tool(annotations=ToolAnnotations(title='Get Accounts', readOnlyHint=True))
async def mail_get_accounts(ctx: Context = None) -> list[AccountStatus]:
    """
    Get all email accounts configured in Apple Mail.

    Each account is annotated with whether this server's account filters keep
    it in scope for searches and bulk operations.

    Args:
        ctx: MCP context for logging

    Returns:
        List of AccountStatus objects
    """
    logger = DualLogger(ctx)
    await logger.info('Listing Mail accounts')

    try:
        results = await _account_statuses()
    except BridgeError as e:
        raise await _failed(logger, 'list accounts', e) from e

    await logger.info(f'Found {len(results)} accounts')

    return results


@mcp.tool(annotations=ToolAnnotations(title='Get Mailboxes', readOnlyHint=True))
async def mail_get_mailboxes(
    account_name: str = Field(..., min_length=1, description='Name of the email account'),
    ctx: Context = None,
) -> MailboxHierarchy:
    """
    Get the mailbox hierarchy of an account.

    Unread counts of large mailboxes are estimated from a sample; such nodes
    have unread_estimated set.

    Args:
        account_name: Name of the Mail account
        ctx: MCP context for logging

    Returns:
        MailboxHierarchy with the tree, sorted root names and total count
    """
    logger = DualLogger(ctx)
    await logger.info(f'Getting mailbox hierarchy for {account_name}')

    try:
        hierarchy = await get_mailbox_hierarchy(get_bridge(), account_name, settings)
    except BridgeError as e:
        raise await _failed(logger, f'get mailboxes of {account_name}', e) from e

    await logger.info(f'Found {hierarchy.total} mailboxes')

    return hierarchy


@mcp.tool(annotations=ToolAnnotations(title='Get Unread Emails', readOnlyHint=True))
async def mail_get_unread(
    limit: int = Field(settings.default_limit, ge=1, le=settings.max_limit, description=LIMIT_DESCRIPTION),
    ctx: Context = None,
) -> list[EmailMessage]:
    """
    Get unread emails, checking inbox-like mailboxes first.

    Args:
        limit: Maximum number of unread emails to retrieve
        ctx: MCP context for logging

    Returns:
        Unread messages, newest first
    """
    logger = DualLogger(ctx)
    await logger.info(f'Getting up to {limit} unread emails')

    try:
        emails = await get_unread_mails(get_bridge(), limit, settings)
    except BridgeError as e:
        raise await _failed(logger, 'get unread emails', e) from e

    await logger.info(f'Found {len(emails)} unread emails')

    return emails


@mcp.tool(annotations=ToolAnnotations(title='Get Latest Emails', readOnlyHint=True))
async def mail_get_latest(
    account_name: str = Field(..., min_length=1, description='Name of the email account'),
    limit: int = Field(10, ge=1, le=settings.max_limit, description='Number of emails to retrieve'),
    ctx: Context = None,
) -> list[EmailMessage]:
    """
    Get the latest emails from a specific account, newest first.

    Args:
        account_name: Name of the Mail account
        limit: Number of emails to retrieve
        ctx: MCP context for logging

    Returns:
        Messages sorted by received date, newest first
    """
    logger = DualLogger(ctx)
    await logger.info(f'Getting latest {limit} emails from {account_name}')

    try:
        emails = await get_latest_mails(get_bridge(), account_name, limit, settings)
    except BridgeError as e:
        raise await _failed(logger, f'get latest emails of {account_name}', e) from e

    await logger.info(f'Found {len(emails)} emails')

    return emails


@mcp.tool(annotations=ToolAnnotations(title='Search Emails', readOnlyHint=True))
async def mail_search(
    search_term: str = Field(..., min_length=1, description='Text to search for in subject or sender'),
    limit: int = Field(settings.default_limit, ge=1, le=settings.max_limit, description=LIMIT_DESCRIPTION),
    ctx: Context = None,
) -> list[EmailMessage]:
    """
    Quick search in priority mailboxes (Inbox, Sent, Drafts) of the first few accounts.

    The scope is limited for performance and message content is omitted.

    Args:
        search_term: Text to search for
        limit: Maximum number of results
        ctx: MCP context for logging

    Returns:
        Matching messages, newest first
    """
    logger = DualLogger(ctx)
    await logger.info(f'Searching priority mailboxes for "{search_term}"')

    try:
        emails = await search_mails(get_bridge(), search_term, limit, settings)
    except BridgeError as e:
        raise await _failed(logger, 'search emails', e) from e

    await logger.info(f'Found {len(emails)} matching emails')

    return emails


@mcp.tool(annotations=ToolAnnotations(title='Search Inbox', readOnlyHint=True))
async def mail_search_inbox(
    search_term: str = Field(..., min_length=1, description='Text to search for in subject or sender'),
    limit: int = Field(settings.default_limit, ge=1, le=settings.max_limit, description=LIMIT_DESCRIPTION),
    ctx: Context = None,
) -> list[EmailMessage]:
    """
    Search the inbox of every account (fast, focused search with content preview).

    Args:
        search_term: Text to search for
        limit: Maximum number of results
        ctx: MCP context for logging

    Returns:
        Matching messages, newest first
    """
    logger = DualLogger(ctx)
    await logger.info(f'Searching inboxes for "{search_term}"')

    try:
        emails = await search_inbox(get_bridge(), search_term, limit, settings)
    except BridgeError as e:
        raise await _failed(logger, 'search inboxes', e) from e

    await logger.info(f'Found {len(emails)} matching emails')

    return emails


@mcp.tool(annotations=ToolAnnotations(title='Search Mailbox', readOnlyHint=True))
async def mail_search_mailbox(
    mailbox_name: str = Field(..., min_length=1, description='Name of the mailbox to search in'),
    search_term: str = Field(..., min_length=1, description='Text to search for in subject or sender'),
    account_name: str | None = Field(
        None, description='Account name (optional - uses the first matching mailbox if not specified)'
    ),
    limit: int = Field(settings.default_limit, ge=1, le=settings.max_limit, description=LIMIT_DESCRIPTION),
    ctx: Context = None,
) -> list[EmailMessage]:
    """
    Search emails in a specific mailbox.

    Args:
        mailbox_name: Exact name of the mailbox
        search_term: Text to search for
        account_name: Account holding the mailbox (optional)
        limit: Maximum number of results
        ctx: MCP context for logging

    Returns:
        Matching messages, newest first
    """
    logger = DualLogger(ctx)
    location = f'{mailbox_name} ({account_name})' if account_name else mailbox_name
    await logger.info(f'Searching {location} for "{search_term}"')

    try:
        emails = await search_in_mailbox(
            get_bridge(), mailbox_name, search_term, limit, settings, account_name=account_name
        )
    except BridgeError as e:
        raise await _failed(logger, f'search {location}', e) from e

    await logger.info(f'Found {len(emails)} matching emails in {location}')

    return emails


@mcp.tool(annotations=ToolAnnotations(title='Send Email', readOnlyHint=False, idempotentHint=False))
async def mail_send(
    to: str = Field(..., min_length=1, description='Recipient email address (comma-separated if multiple)'),
    subject: str = Field(..., min_length=1, description='Email subject line'),
    body: str = Field(..., description='Email body content (plain text)'),
    account_name: str | None = Field(None, description='Account name to send from (optional)'),
    cc: str | None = Field(None, description='Carbon copy recipients (comma-separated if multiple)'),
    bcc: str | None = Field(None, description='Blind carbon copy recipients (comma-separated if multiple)'),
    ctx: Context = None,
) -> EmailSentResult:
    """
    Compose and send an email through Mail.

    Args:
        to: Recipient email address
        subject: Email subject
        body: Email body content
        account_name: Account to send from (optional)
        cc: Carbon copy recipients (optional)
        bcc: Blind carbon copy recipients (optional)
        ctx: MCP context for logging

    Returns:
        EmailSentResult with Mail's confirmation and details
    """
    logger = DualLogger(ctx)
    await logger.info(f'Sending email to {to}')

    request = SendMailRequest(to=to, subject=subject, body=body, account_name=account_name, cc=cc, bcc=bcc)
    try:
        confirmation = await send_mail(get_bridge(), request)
    except BridgeError as e:
        raise await _failed(logger, f'send email to {to}', e) from e

    await logger.info(confirmation)

    return EmailSentResult(
        confirmation=confirmation,
        to=to,
        subject=subject,
        body_preview=preview(body),
        account_name=account_name,
        cc=cc,
        bcc=bcc,
    )


@mcp.tool(annotations=ToolAnnotations(title='Mark As Read', readOnlyHint=False, idempotentHint=True))
async def mail_mark_read(
    message_ids: list[str] = Field(..., min_length=1, description='Message-IDs of the emails to mark as read'),
    inbox_only: bool = Field(False, description='Only look for the emails in inbox folders (faster)'),
    ctx: Context = None,
) -> OperationResult:
    """
    Mark emails as read by their Message-IDs.

    Args:
        message_ids: Protocol Message-IDs (as returned in message_id)
        inbox_only: Only look in each account's inbox
        ctx: MCP context for logging

    Returns:
        OperationResult with the number marked and errors for the rest
    """
    logger = DualLogger(ctx)
    await logger.info(f'Marking {len(message_ids)} emails as read')

    try:
        result = await mark_as_read(get_bridge(), message_ids, settings, inbox_only=inbox_only)
    except BridgeError as e:
        raise await _failed(logger, 'mark emails as read', e) from e

    await logger.info(f'Marked {result.succeeded_count} emails as read')
    for error in result.errors:
        await logger.warning(error)

    return result


@mcp.tool(annotations=ToolAnnotations(title='Delete Emails', readOnlyHint=False, destructiveHint=True))
async def mail_delete(
    message_ids: list[str] = Field(..., min_length=1, description='Message-IDs of the emails to delete'),
    inbox_only: bool = Field(False, description='Only look for the emails in inbox folders (faster)'),
    ctx: Context = None,
) -> OperationResult:
    """
    Delete emails by their Message-IDs.

    Args:
        message_ids: Protocol Message-IDs (as returned in message_id)
        inbox_only: Only look in each account's inbox
        ctx: MCP context for logging

    Returns:
        OperationResult with the number deleted and errors for the rest
    """
    logger = DualLogger(ctx)
    await logger.info(f'Deleting {len(message_ids)} emails')

    try:
        result = await delete_emails(get_bridge(), message_ids, settings, inbox_only=inbox_only)
    except BridgeError as e:
        raise await _failed(logger, 'delete emails', e) from e

    await logger.info(f'Deleted {result.succeeded_count} emails')
    for error in result.errors:
        await logger.warning(error)

    return result


@mcp.tool(annotations=ToolAnnotations(title='Move Emails', readOnlyHint=False, idempotentHint=True))
async def mail_move(
    message_ids: list[str] = Field(..., min_length=1, description='Message-IDs of the emails to move'),
    target_mailbox: str = Field(..., min_length=1, description='Name of the destination mailbox'),
    target_account: str | None = Field(None, description='Account of the destination mailbox (optional)'),
    inbox_only: bool = Field(False, description='Only look for the emails in inbox folders (faster)'),
    ctx: Context = None,
) -> MoveResult:
    """
    Move emails to another mailbox by their Message-IDs.

    Args:
        message_ids: Protocol Message-IDs (as returned in message_id)
        target_mailbox: Destination mailbox name
        target_account: Account of the destination mailbox (optional)
        inbox_only: Only look in each account's inbox
        ctx: MCP context for logging

    Returns:
        MoveResult with the number moved and errors for the rest
    """
    logger = DualLogger(ctx)
    destination = f'{target_mailbox} in {target_account}' if target_account else target_mailbox
    await logger.info(f'Moving {len(message_ids)} emails to {destination}')

    try:
        result = await move_emails(
            get_bridge(),
            message_ids,
            target_mailbox,
            settings,
            target_account=target_account,
            inbox_only=inbox_only,
        )
    except BridgeError as e:
        raise await _failed(logger, f'move emails to {destination}', e) from e

    await logger.info(f'Moved {result.succeeded_count} emails to {destination}')
    for error in result.errors:
        await logger.warning(error)

    return MoveResult(
        moved=result.succeeded_count,
        target_mailbox=target_mailbox,
        target_account=target_account,
        errors=result.errors,
    )


def main():
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    logging.getLogger(__name__).info('Starting Apple Mail MCP Server...')
    mcp.run(transport='stdio')


if __name__ == '__main__':
    main()
