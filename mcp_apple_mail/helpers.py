"""Helper utilities for Apple Mail MCP server."""

from datetime import datetime

from mcp_apple_mail.models import AccountStatus, EmailMessage, MailboxHierarchy

EMAIL_PREVIEW_LENGTH = 200
MAX_CHILDREN_SHOWN = 5


def preview(text: str, length: int = EMAIL_PREVIEW_LENGTH) -> str:
    """Truncate text to a preview of at most ``length`` characters."""
    return text[:length] if len(text) > length else text


def format_email_date(date_str: str) -> str:
    """
    Format an ISO-8601 timestamp in the local timezone.

    Args:
        date_str: ISO-8601 timestamp as produced by Mail

    Returns:
        Formatted date string in format: YYYY-MM-DD HH:MM AM/PM TZ
        Falls back to original date string if parsing fails.

    Example:
        "2025-10-28T16:56:35.000Z" -> "2025-10-28 09:56 AM PDT"
    """
    if not date_str:
        return 'Unknown Date'

    try:
        dt = datetime.fromisoformat(date_str)
        return dt.astimezone().strftime('%Y-%m-%d %I:%M %p %Z')
    except (ValueError, TypeError):
        return date_str


def format_accounts_as_markdown(accounts: list[AccountStatus]) -> str:
    """
    Format Mail accounts as markdown.

    Args:
        accounts: Accounts with their configuration status

    Returns:
        Markdown formatted account list
    """
    if not accounts:
        return '# Mail Accounts\n\nNo accounts configured in Mail.\n'

    markdown = '# Mail Accounts\n\n'
    for account in accounts:
        addresses = ', '.join(account.email_addresses) or 'no addresses'
        markdown += f'- **{account.name}** ({addresses}) - {account.config_status}'
        if not account.enabled:
            markdown += ', disabled in Mail'
        markdown += '\n'
    return markdown


def format_hierarchy_as_markdown(hierarchy: MailboxHierarchy, account_name: str) -> str:
    """
    Format a mailbox hierarchy as a markdown tree.

    Only the first few children of each root are listed.

    Args:
        hierarchy: Mailbox hierarchy of the account
        account_name: Account name for the heading

    Returns:
        Markdown formatted hierarchy
    """
    markdown = f"""# Mailbox Hierarchy: {account_name}

**Total:** {hierarchy.total} mailboxes

"""

    for root_name in hierarchy.roots:
        root = hierarchy.tree[root_name]
        markdown += f'- **{root_name}** ({root.message_count} messages, {_unread_label(root)})\n'

        for child_name in root.children[:MAX_CHILDREN_SHOWN]:
            child = hierarchy.tree.get(child_name)
            if child:
                markdown += f'  - {child_name} ({child.message_count} messages, {_unread_label(child)})\n'

        if len(root.children) > MAX_CHILDREN_SHOWN:
            markdown += f'  - ... and {len(root.children) - MAX_CHILDREN_SHOWN} more\n'

    return markdown


def _unread_label(node) -> str:
    prefix = '~' if node.unread_estimated else ''
    return f'{prefix}{node.unread_count} unread'


def format_email_summary(email: EmailMessage) -> str:
    """
    Format a one-message summary line block as markdown.

    Args:
        email: The message

    Returns:
        Markdown formatted summary
    """
    return f"""## {email.subject}

**From:** {email.sender}
**Date:** {format_email_date(email.date_received)}
**Mailbox:** {email.mailbox} ({email.account_name})
**Read:** {'yes' if email.is_read else 'no'}
**Message-ID:** {email.message_id}
"""
