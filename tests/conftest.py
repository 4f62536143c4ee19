"""Shared pytest fixtures: an in-memory Mail and a bridge that interprets commands against it."""

from dataclasses import dataclass, field
from typing import Any

import pytest

from mcp_apple_mail.config import Settings
from mcp_apple_mail.errors import HostExecutionError
from mcp_apple_mail.jxa import BulkApply, Command, ListMailboxes, MailboxStats, ScanMessages, SendMail
from mcp_apple_mail.models import MailboxRef


@dataclass
class FakeMessage:
    message_id: str
    subject: str = ''
    sender: str = 'someone@example.com'
    date_received: str = '2024-01-01T00:00:00.000Z'
    is_read: bool = False
    is_flagged: bool = False
    content: str = ''
    recipients: list[str] = field(default_factory=lambda: ['me@example.com'])
    numeric_id: int = 0

    def to_row(self, target: MailboxRef, content_length: int, recipient_limit: int) -> dict[str, Any]:
        return {
            'id': str(self.numeric_id),
            'message_id': self.message_id,
            'subject': self.subject or '[No Subject]',
            'sender': self.sender,
            'recipients': self.recipients[:recipient_limit],
            'date_sent': self.date_received,
            'date_received': self.date_received,
            'content': self.content[:content_length] if content_length > 0 else '',
            'is_read': self.is_read,
            'is_flagged': self.is_flagged,
            'mailbox': target.name,
            'account_name': target.account_name,
        }


class FakeMail:
    """Accounts -> mailboxes -> messages, oldest first like Mail's element order."""

    def __init__(self):
        self.accounts: dict[str, dict[str, Any]] = {}
        self.sent: list[SendMail] = []
        self.broken: dict[str, str] = {}  # message_id -> error raised when acted upon
        self.writes = 0
        self._next_id = 1

    def add_account(self, name: str, addresses: list[str] | None = None, enabled: bool = True):
        self.accounts[name] = {
            'addresses': addresses if addresses is not None else [f'{name.lower()}@example.com'],
            'enabled': enabled,
            'mailboxes': {},
        }

    def add_mailbox(self, account: str, name: str, parent: str | None = None):
        if account not in self.accounts:
            self.add_account(account)
        self.accounts[account]['mailboxes'][name] = {'parent': parent, 'messages': []}

    def add_message(self, account: str, mailbox: str, message_id: str, **kwargs) -> FakeMessage:
        if mailbox not in self.accounts.get(account, {}).get('mailboxes', {}):
            self.add_mailbox(account, mailbox)
        message = FakeMessage(message_id=message_id, numeric_id=self._next_id, **kwargs)
        self._next_id += 1
        self.messages(account, mailbox).append(message)
        return message

    def messages(self, account: str, mailbox: str) -> list[FakeMessage] | None:
        box = self.accounts.get(account, {}).get('mailboxes', {}).get(mailbox)
        return None if box is None else box['messages']

    def locate(self, message_id: str) -> tuple[str, str, FakeMessage] | None:
        for account, data in self.accounts.items():
            for name, box in data['mailboxes'].items():
                for message in box['messages']:
                    if message.message_id == message_id:
                        return account, name, message
        return None


class FakeBridge:
    """Stands in for JXABridge, emulating each JXA program against a FakeMail."""

    def __init__(self, mail: FakeMail):
        self.mail = mail
        self.commands: list[Command] = []
        self.timeouts: list[float | None] = []
        self.visited: list[tuple[str, str]] = []  # Mailboxes opened by scans and bulk operations

    async def run(self, command: Command, timeout: float | None = None) -> Any:
        self.commands.append(command)
        self.timeouts.append(timeout)
        return getattr(self, f'_{command.op.value}')(command)

    def ops(self) -> list[str]:
        return [command.op.value for command in self.commands]

    def _list_accounts(self, command: Command) -> list[dict[str, Any]]:
        return [
            {'name': name, 'email_addresses': data['addresses'], 'enabled': data['enabled'], 'id': f'id-{name}'}
            for name, data in self.mail.accounts.items()
        ]

    def _list_mailboxes(self, command: ListMailboxes) -> list[dict[str, Any]]:
        return [
            {'account_name': account, 'name': name}
            for account, data in self.mail.accounts.items()
            if command.accounts is None or account in command.accounts
            for name in data['mailboxes']
        ]

    def _mailbox_stats(self, command: MailboxStats) -> list[dict[str, Any]]:
        if command.account not in self.mail.accounts:
            raise HostExecutionError(f"Error: Account '{command.account}' not found")
        records = []
        for name, box in self.mail.accounts[command.account]['mailboxes'].items():
            messages = box['messages']
            sampled = min(command.sample_size, len(messages))
            records.append({
                'name': name,
                'parent': box['parent'],
                'message_count': len(messages),
                'sampled': sampled,
                'sampled_unread': sum(1 for m in messages[:sampled] if not m.is_read),
            })
        return records

    def _scan_messages(self, command: ScanMessages) -> list[dict[str, Any]]:
        found = []
        term = command.term.lower() if command.term is not None else None

        def full() -> bool:
            return command.stop_after is not None and len(found) >= command.stop_after

        for target in command.targets:
            if full():
                break
            messages = self.mail.messages(target.account_name, target.name)
            if messages is None:
                continue
            self.visited.append((target.account_name, target.name))
            depth = len(messages) if command.per_mailbox is None else min(command.per_mailbox, len(messages))
            for message in reversed(messages[len(messages) - depth:]):
                if full():
                    break
                if command.unread_only and message.is_read:
                    continue
                if term is not None and term not in message.subject.lower() and term not in message.sender.lower():
                    continue
                found.append(message.to_row(target, command.content_length, command.recipient_limit))
        return found

    def _bulk_apply(self, command: BulkApply) -> dict[str, Any]:
        remaining = list(command.message_ids)
        succeeded, failures = [], []

        destination = None
        if command.action == 'move':
            destination = self.mail.messages(command.destination.account_name, command.destination.name)
            if destination is None:
                raise HostExecutionError(f"Target mailbox '{command.destination.name}' not found")

        for target in command.targets:
            if not remaining:
                break
            messages = self.mail.messages(target.account_name, target.name)
            if messages is None:
                continue
            self.visited.append((target.account_name, target.name))
            for index in range(len(messages) - 1, -1, -1):
                if not remaining:
                    break
                message = messages[index]
                if message.message_id not in remaining:
                    continue
                remaining.remove(message.message_id)
                if message.message_id in self.mail.broken:
                    failures.append({'message_id': message.message_id, 'error': self.mail.broken[message.message_id]})
                    continue
                if command.action == 'mark_read':
                    if not message.is_read:
                        message.is_read = True
                        self.mail.writes += 1
                elif command.action == 'delete':
                    messages.pop(index)
                    self.mail.writes += 1
                elif target != command.destination:
                    destination.append(messages.pop(index))
                    self.mail.writes += 1
                succeeded.append(message.message_id)

        return {'succeeded': succeeded, 'failures': failures, 'missing': remaining}

    def _send_mail(self, command: SendMail) -> str:
        if command.account_name is not None:
            account = self.mail.accounts.get(command.account_name)
            if not account or not account['addresses']:
                raise HostExecutionError(
                    f"Error: Account '{command.account_name}' not found or has no email addresses"
                )
        self.mail.sent.append(command)
        return 'Email sent successfully to ' + ', '.join(command.to)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def mail() -> FakeMail:
    return FakeMail()


@pytest.fixture
def bridge(mail: FakeMail) -> FakeBridge:
    return FakeBridge(mail)


@pytest.fixture
def populated_mail(mail: FakeMail) -> FakeMail:
    """Two accounts with inbox, sent and archive folders."""
    mail.add_mailbox('Work', 'INBOX')
    mail.add_mailbox('Work', 'Sent Messages')
    mail.add_mailbox('Work', 'Projects')
    mail.add_mailbox('Personal', 'Archive')
    mail.add_mailbox('Personal', 'Inbox')

    mail.add_message('Work', 'INBOX', '<w1@x>', subject='Budget draft', date_received='2024-03-01T09:00:00.000Z')
    mail.add_message('Work', 'INBOX', '<w2@x>', subject='Lunch', date_received='2024-03-03T09:00:00.000Z')
    mail.add_message(
        'Work', 'Sent Messages', '<w3@x>', subject='Re: Budget', date_received='2024-03-02T09:00:00.000Z',
        is_read=True,
    )
    mail.add_message('Work', 'Projects', '<w4@x>', subject='Budget archive', date_received='2024-03-05T09:00:00.000Z')
    mail.add_message(
        'Personal', 'Inbox', '<p1@x>', subject='Family budget', sender='mom@example.com',
        date_received='2024-03-04T09:00:00.000Z', content='Let us talk about the budget for the holidays.',
    )
    mail.add_message('Personal', 'Archive', '<p2@x>', subject='Old budget', date_received='2024-01-01T09:00:00.000Z')
    return mail
