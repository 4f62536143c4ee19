"""
Mailbox hierarchy assembly.

Mail reports mailboxes as a flat list where each entry names its container.
Some containers are never listed themselves (account-level folders that only
exist as ancestors), so they are synthesized as virtual nodes.
"""

import logging
import math
from collections.abc import Iterable

from mcp_apple_mail.models import MailboxHierarchy, MailboxNode, MailboxRecord

logger = logging.getLogger(__name__)


def estimate_unread(message_count: int, sampled: int, sampled_unread: int) -> tuple[int, bool]:
    """
    Extrapolate an unread count from a read-status sample.

    Only the first ``sampled`` messages of a mailbox are inspected. When that
    covers the whole mailbox the count is exact; otherwise the sampled ratio is
    applied to the full message count.

    Args:
        message_count: Number of messages in the mailbox
        sampled: Number of messages whose read status was inspected
        sampled_unread: How many of those were unread

    Returns:
        Tuple of (unread count, whether it is an estimate)
    """
    if sampled <= 0 or sampled >= message_count:
        return sampled_unread, False
    return math.floor(sampled_unread * message_count / sampled + 0.5), True


def build_hierarchy(records: Iterable[MailboxRecord], account_name: str) -> MailboxHierarchy:
    """
    Build the mailbox forest for one account.

    Args:
        records: Flat mailbox listing
        account_name: Account the mailboxes belong to

    Returns:
        MailboxHierarchy whose roots and children are sorted by name
    """
    tree: dict[str, MailboxNode] = {}
    children: dict[str, list[str]] = {}
    roots: list[str] = []

    for record in records:
        if record.name in tree:
            logger.warning('Duplicate mailbox name %r in account %r; keeping the first', record.name, account_name)
            continue

        unread_count, estimated = estimate_unread(record.message_count, record.sampled, record.sampled_unread)
        tree[record.name] = MailboxNode(
            name=record.name,
            message_count=record.message_count,
            unread_count=unread_count,
            unread_estimated=estimated,
            path=f'{record.parent}/{record.name}' if record.parent else record.name,
            parent=record.parent,
            account_name=account_name,
        )

        if record.parent:
            children.setdefault(record.parent, []).append(record.name)
        else:
            roots.append(record.name)

    for parent, names in children.items():
        if parent not in tree:
            tree[parent] = MailboxNode(
                name=parent,
                message_count=0,
                unread_count=0,
                virtual=True,
                path=parent,
                account_name=account_name,
            )
            roots.append(parent)
        tree[parent].children = sorted(names)

    roots.sort()

    return MailboxHierarchy(tree=tree, roots=roots, total=len(tree))
