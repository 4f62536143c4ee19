"""
Tests for scope-limited search.
"""

from mcp_apple_mail.config import Settings
from mcp_apple_mail.jxa import ScanMessages
from mcp_apple_mail.models import EmailMessage, MailboxRef, SearchScope
from mcp_apple_mail.search import (
    inbox_targets,
    is_priority_mailbox,
    merge_newest_first,
    priority_targets,
    prioritize,
    search_in_mailbox,
    search_inbox,
    search_mails,
)


def ref(account: str, name: str) -> MailboxRef:
    return MailboxRef(account_name=account, name=name)


def message(mailbox: str, received: str, account: str = 'Work') -> EmailMessage:
    return EmailMessage(
        id='1',
        message_id=f'<{mailbox}-{received}@x>',
        subject='s',
        sender='a@example.com',
        recipients=[],
        date_sent=received,
        date_received=received,
        content='',
        is_read=False,
        is_flagged=False,
        mailbox=mailbox,
        account_name=account,
    )


def assert_newest_first(results: list[EmailMessage]):
    received = [m.date_received for m in results]
    assert received == sorted(received, reverse=True)


def last_scan(bridge) -> ScanMessages:
    return [c for c in bridge.commands if isinstance(c, ScanMessages)][-1]


# Scope selection


def test_priority_match_is_case_insensitive_exact_or_substring():
    names = ['INBOX', 'Sent']
    assert is_priority_mailbox('Inbox', names)
    assert is_priority_mailbox('Sent Messages', names)
    assert is_priority_mailbox('[Gmail]/Sent Mail', names)
    assert not is_priority_mailbox('Archive', names)


def test_prioritize_keeps_order_within_groups():
    refs = [ref('W', 'Archive'), ref('W', 'Sent'), ref('W', 'Projects'), ref('W', 'INBOX')]
    ordered = prioritize(refs, ['INBOX', 'Sent'])
    assert [r.name for r in ordered] == ['Sent', 'INBOX', 'Archive', 'Projects']


def test_priority_targets_respect_account_and_mailbox_limits():
    refs = [
        ref('A', 'INBOX'), ref('A', 'Sent'), ref('A', 'Junk'),
        ref('B', 'INBOX'),
        ref('C', 'INBOX'),
    ]
    scope = SearchScope(account_limit=2, mailbox_scan_limit=10, messages_per_mailbox=50, priority_names=['INBOX', 'Sent'])
    assert priority_targets(refs, scope) == [ref('A', 'INBOX'), ref('A', 'Sent'), ref('B', 'INBOX')]

    scope = SearchScope(account_limit=3, mailbox_scan_limit=2, messages_per_mailbox=50, priority_names=['INBOX', 'Sent'])
    assert priority_targets(refs, scope) == [ref('A', 'INBOX'), ref('A', 'Sent')]


def test_inbox_targets_one_per_account_preferring_exact_name():
    refs = [
        ref('A', 'Old Inbox Stuff'), ref('A', 'INBOX'),
        ref('B', 'Inbox - Team'),
        ref('C', 'Archive'),
    ]
    assert inbox_targets(refs) == [ref('A', 'INBOX'), ref('B', 'Inbox - Team')]


def test_merge_sorts_only_multi_mailbox_results():
    single = [message('INBOX', '2024-01-01T00:00:00.000Z'), message('INBOX', '2024-02-01T00:00:00.000Z')]
    assert merge_newest_first(single, 10) == single

    mixed = [
        message('INBOX', '2024-01-01T00:00:00.000Z'),
        message('Sent', '2024-03-01T00:00:00.000Z'),
        message('INBOX', '2024-02-01T00:00:00.000Z'),
    ]
    merged = merge_newest_first(mixed, 2)
    assert [m.date_received for m in merged] == ['2024-03-01T00:00:00.000Z', '2024-02-01T00:00:00.000Z']


def test_merge_places_undated_messages_last():
    mixed = [message('INBOX', ''), message('Sent', '2024-03-01T00:00:00.000Z')]
    assert [m.mailbox for m in merge_newest_first(mixed, 5)] == ['Sent', 'INBOX']


# Priority-scoped search


async def test_search_mails_scans_priority_mailboxes(bridge, populated_mail, settings):
    results = await search_mails(bridge, 'BUDGET', 20, settings)

    assert {m.message_id for m in results} == {'<w1@x>', '<w3@x>', '<p1@x>'}
    assert_newest_first(results)
    assert all(m.content == '' for m in results)

    scan = last_scan(bridge)
    assert ref('Work', 'Projects') not in scan.targets
    assert ref('Personal', 'Archive') not in scan.targets
    assert scan.per_mailbox == settings.messages_per_search
    assert scan.term == 'budget'


async def test_search_mails_limit_and_account_limit(bridge, populated_mail):
    settings = Settings(search_account_limit=1)

    results = await search_mails(bridge, 'budget', 1, settings)

    assert len(results) == 1
    assert all(m.account_name == 'Work' for m in results)
    assert {t.account_name for t in last_scan(bridge).targets} == {'Work'}


async def test_search_mails_matches_sender(bridge, populated_mail, settings):
    results = await search_mails(bridge, 'MOM@', 20, settings)
    assert [m.message_id for m in results] == ['<p1@x>']


async def test_search_mails_skips_disabled_accounts(bridge, populated_mail):
    settings = Settings(disabled_accounts=['Personal'])
    results = await search_mails(bridge, 'budget', 20, settings)
    assert {m.account_name for m in results} == {'Work'}


async def test_search_mails_respects_scan_depth(bridge, mail, settings):
    for i in range(10):
        mail.add_message('Work', 'INBOX', f'<m{i}@x>', subject=f'report {i}', date_received=f'2024-01-{i + 1:02d}T00:00:00.000Z')
    scope = SearchScope(account_limit=3, mailbox_scan_limit=10, messages_per_mailbox=3, priority_names=['INBOX'])

    results = await search_mails(bridge, 'report', 20, settings, scope=scope)

    # Only the three newest messages are inspected
    assert [m.message_id for m in results] == ['<m9@x>', '<m8@x>', '<m7@x>']


async def test_search_mails_without_priority_mailboxes(bridge, mail, settings):
    mail.add_message('Work', 'Projects', '<a@x>', subject='budget')
    assert await search_mails(bridge, 'budget', 20, settings) == []
    assert 'scan_messages' not in bridge.ops()


# Inbox-only search


async def test_search_inbox_uses_one_inbox_per_account_with_preview(bridge, populated_mail, settings):
    results = await search_inbox(bridge, 'budget', 20, settings)

    assert [m.message_id for m in results] == ['<p1@x>', '<w1@x>']
    assert results[0].content == 'Let us talk about the budget for the holidays.'

    scan = last_scan(bridge)
    assert scan.targets == [ref('Work', 'INBOX'), ref('Personal', 'Inbox')]
    assert scan.per_mailbox == settings.inbox_scan_depth
    assert scan.content_length == settings.content_preview_length


async def test_search_inbox_truncates_preview(bridge, populated_mail):
    settings = Settings(content_preview_length=6)
    results = await search_inbox(bridge, 'family', 20, settings)
    assert results[0].content == 'Let us'


async def test_search_inbox_short_circuits_at_limit(bridge, mail, settings):
    for i in range(5):
        mail.add_message('A', 'INBOX', f'<a{i}@x>', subject='hit', date_received=f'2024-01-0{i + 1}T00:00:00.000Z')
    mail.add_message('B', 'INBOX', '<b@x>', subject='hit', date_received='2024-02-01T00:00:00.000Z')

    results = await search_inbox(bridge, 'hit', 2, settings)

    assert len(results) == 2
    assert ('B', 'INBOX') not in bridge.visited


# Single-mailbox search


async def test_search_in_mailbox(bridge, populated_mail, settings):
    results = await search_in_mailbox(bridge, 'Projects', 'budget', 20, settings)

    assert [m.message_id for m in results] == ['<w4@x>']
    assert results[0].content == ''
    assert last_scan(bridge).targets == [ref('Work', 'Projects')]


async def test_search_in_mailbox_with_account(bridge, mail, settings):
    mail.add_message('A', 'Receipts', '<a@x>', subject='receipt A')
    mail.add_message('B', 'Receipts', '<b@x>', subject='receipt B')

    results = await search_in_mailbox(bridge, 'Receipts', 'receipt', 20, settings, account_name='B')

    assert [m.message_id for m in results] == ['<b@x>']


async def test_search_in_unknown_mailbox_returns_nothing(bridge, populated_mail, settings):
    assert await search_in_mailbox(bridge, 'Nope', 'budget', 20, settings) == []
    assert 'scan_messages' not in bridge.ops()


async def test_search_in_mailbox_never_exceeds_limit(bridge, mail, settings):
    for i in range(8):
        mail.add_message('A', 'INBOX', f'<m{i}@x>', subject='same', date_received=f'2024-01-0{i + 1}T00:00:00.000Z')

    results = await search_in_mailbox(bridge, 'INBOX', 'same', 3, settings)

    assert [m.message_id for m in results] == ['<m7@x>', '<m6@x>', '<m5@x>']
