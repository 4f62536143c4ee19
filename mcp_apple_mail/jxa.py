"""
JXA program generation for Apple Mail.

Every request to Mail is expressed as a command: an operation tag plus a typed
argument record. ``render`` turns a command into a self-contained JavaScript for
Automation program. Arguments never get spliced into the script body; they are
serialized once into an ``args`` literal by ``jxa_literal``, which is the only
place that escapes strings for the host.
"""

import enum
from typing import Any, ClassVar, Literal

from mcp_apple_mail.models import BaseModel, MailboxRef


class Operation(str, enum.Enum):
    LIST_ACCOUNTS = 'list_accounts'
    LIST_MAILBOXES = 'list_mailboxes'
    MAILBOX_STATS = 'mailbox_stats'
    SCAN_MESSAGES = 'scan_messages'
    BULK_APPLY = 'bulk_apply'
    SEND_MAIL = 'send_mail'


class Command(BaseModel):
    """Base for all commands. Subclasses set ``op`` and declare their arguments."""

    op: ClassVar[Operation]


class ListAccounts(Command):
    op: ClassVar[Operation] = Operation.LIST_ACCOUNTS


class ListMailboxes(Command):
    """Enumerate mailbox names, optionally restricted to some accounts."""

    op: ClassVar[Operation] = Operation.LIST_MAILBOXES

    accounts: list[str] | None = None


class MailboxStats(Command):
    """Flat mailbox listing with counts and a read-status sample for one account."""

    op: ClassVar[Operation] = Operation.MAILBOX_STATS

    account: str
    sample_size: int


class ScanMessages(Command):
    """
    Scan mailboxes newest-first and collect matching messages.

    ``per_mailbox`` bounds how many messages are inspected in each mailbox and
    ``stop_after`` ends the whole scan once that many matches are collected;
    None means unbounded. A ``content_length`` of 0 omits message content.
    """

    op: ClassVar[Operation] = Operation.SCAN_MESSAGES

    targets: list[MailboxRef]
    term: str | None = None
    unread_only: bool = False
    per_mailbox: int | None = None
    stop_after: int | None = None
    content_length: int = 0
    recipient_limit: int = 5


class BulkApply(Command):
    """Apply an action to messages found by Message-ID across the target mailboxes."""

    op: ClassVar[Operation] = Operation.BULK_APPLY

    targets: list[MailboxRef]
    message_ids: list[str]
    action: Literal['mark_read', 'delete', 'move']
    destination: MailboxRef | None = None


class SendMail(Command):
    op: ClassVar[Operation] = Operation.SEND_MAIL

    to: list[str]
    cc: list[str] = []
    bcc: list[str] = []
    subject: str
    body: str
    account_name: str | None = None


_ESCAPES = {
    '\\': '\\\\',
    '"': '\\"',
    "'": "\\'",
    '`': '\\`',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\b': '\\b',
    '\f': '\\f',
    # NEL is a line break to str.splitlines, which indents the program body
    '\x85': '\\u0085',
    '\u2028': '\\u2028',
    '\u2029': '\\u2029',
}


def escape_jxa_string(value: str) -> str:
    """
    Escape a string for use inside a JavaScript string literal.

    Handles quotes of every kind, backslashes, line terminators and the
    remaining control characters.

    Args:
        value: Raw string

    Returns:
        Escaped string, without surrounding quotes
    """
    out = []
    for char in value:
        if char in _ESCAPES:
            out.append(_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            out.append(f'\\u{ord(char):04x}')
        else:
            out.append(char)
    return ''.join(out)


def jxa_literal(value: Any) -> str:
    """
    Render a Python value as a JavaScript literal.

    Supports None, booleans, numbers, strings, lists/tuples and dicts with
    string keys, which covers every dumped command.
    """
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, enum.Enum):
        return jxa_literal(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float('inf'), float('-inf')):
            raise ValueError(f'Cannot render non-finite number {value!r}')
        return repr(value)
    if isinstance(value, str):
        return f'"{escape_jxa_string(value)}"'
    if isinstance(value, (list, tuple)):
        return '[' + ', '.join(jxa_literal(item) for item in value) + ']'
    if isinstance(value, dict):
        items = (f'"{escape_jxa_string(str(key))}": {jxa_literal(item)}' for key, item in value.items())
        return '{' + ', '.join(items) + '}'
    raise TypeError(f'Cannot render {type(value).__name__} as a JXA literal')


# Shared helpers available to every operation body
PRELUDE = """
const Mail = Application('Mail');

function isoDate(date) {
  return date ? date.toISOString() : '';
}

function findAccount(name) {
  const accounts = Mail.accounts();
  for (let i = 0; i < accounts.length; i++) {
    if (accounts[i].name() === name) {
      return accounts[i];
    }
  }
  return null;
}

function findMailbox(accountName, mailboxName) {
  const account = findAccount(accountName);
  if (!account) {
    return null;
  }
  const mailboxes = account.mailboxes();
  for (let i = 0; i < mailboxes.length; i++) {
    if (mailboxes[i].name() === mailboxName) {
      return mailboxes[i];
    }
  }
  return null;
}

function serializeMessage(msg, mailboxName, accountName, contentLength, recipientLimit) {
  const recipients = [];
  try {
    const toRecipients = msg.toRecipients();
    for (let k = 0; k < Math.min(recipientLimit, toRecipients.length); k++) {
      recipients.push(toRecipients[k].address());
    }
  } catch (e) {}

  let content = '';
  if (contentLength > 0) {
    try {
      content = (msg.content() || '').substring(0, contentLength);
    } catch (e) {}
  }

  return {
    id: String(msg.id()),
    message_id: msg.messageId() || '',
    subject: msg.subject() || '[No Subject]',
    sender: (msg.sender() || '[Unknown]').toString(),
    recipients: recipients,
    date_sent: isoDate(msg.dateSent()),
    date_received: isoDate(msg.dateReceived()),
    content: content,
    is_read: msg.readStatus(),
    is_flagged: msg.flaggedStatus(),
    mailbox: mailboxName,
    account_name: accountName
  };
}
"""

_BODIES = {
    Operation.LIST_ACCOUNTS: """
const result = [];
const accounts = Mail.accounts();

for (let i = 0; i < accounts.length; i++) {
  try {
    const account = accounts[i];
    const addresses = [];
    try {
      const raw = account.emailAddresses();
      for (let j = 0; j < raw.length; j++) {
        addresses.push(raw[j].toString());
      }
    } catch (e) {}

    result.push({
      name: account.name(),
      email_addresses: addresses,
      enabled: account.enabled(),
      id: String(account.id())
    });
  } catch (e) {}
}

return result;
""",
    Operation.LIST_MAILBOXES: """
const result = [];
const accounts = Mail.accounts();

for (let i = 0; i < accounts.length; i++) {
  const accountName = accounts[i].name();
  if (args.accounts !== null && args.accounts.indexOf(accountName) === -1) {
    continue;
  }
  try {
    const names = accounts[i].mailboxes.name();
    for (let j = 0; j < names.length; j++) {
      result.push({account_name: accountName, name: names[j]});
    }
  } catch (e) {}
}

return result;
""",
    Operation.MAILBOX_STATS: """
const account = findAccount(args.account);
if (!account) {
  throw new Error("Account '" + args.account + "' not found");
}

function parentName(mailbox) {
  try {
    const container = mailbox.container();
    if (container && container.class() === 'mailbox') {
      return container.name();
    }
  } catch (e) {}
  return null;
}

const records = [];
const mailboxes = account.mailboxes();

for (let i = 0; i < mailboxes.length; i++) {
  const mailbox = mailboxes[i];
  let messageCount = 0;
  let sampled = 0;
  let sampledUnread = 0;

  try {
    const messages = mailbox.messages();
    messageCount = messages.length;
    sampled = Math.min(args.sample_size, messageCount);
    for (let j = 0; j < sampled; j++) {
      if (!messages[j].readStatus()) {
        sampledUnread++;
      }
    }
  } catch (e) {
    sampled = 0;
    sampledUnread = 0;
  }

  records.push({
    name: mailbox.name(),
    parent: parentName(mailbox),
    message_count: messageCount,
    sampled: sampled,
    sampled_unread: sampledUnread
  });
}

return records;
""",
    Operation.SCAN_MESSAGES: """
const found = [];
const term = args.term === null ? null : args.term.toLowerCase();

function full() {
  return args.stop_after !== null && found.length >= args.stop_after;
}

for (let t = 0; t < args.targets.length && !full(); t++) {
  const target = args.targets[t];
  const mailbox = findMailbox(target.account_name, target.name);
  if (!mailbox) {
    continue;
  }

  try {
    const messages = mailbox.messages();
    const count = messages.length;
    const depth = args.per_mailbox === null ? count : Math.min(args.per_mailbox, count);

    // Newest messages are at the end
    for (let j = count - 1; j >= count - depth && !full(); j--) {
      try {
        const msg = messages[j];
        if (args.unread_only && msg.readStatus()) {
          continue;
        }
        if (term !== null) {
          const subject = (msg.subject() || '').toLowerCase();
          const sender = (msg.sender() || '').toString().toLowerCase();
          if (subject.indexOf(term) === -1 && sender.indexOf(term) === -1) {
            continue;
          }
        }
        found.push(serializeMessage(
          msg, target.name, target.account_name, args.content_length, args.recipient_limit
        ));
      } catch (e) {}
    }
  } catch (e) {}
}

return found;
""",
    Operation.BULK_APPLY: """
const remaining = args.message_ids.slice();
const succeeded = [];
const failures = [];

let destination = null;
if (args.action === 'move') {
  destination = findMailbox(args.destination.account_name, args.destination.name);
  if (!destination) {
    throw new Error(
      "Target mailbox '" + args.destination.name + "' not found in account '" +
      args.destination.account_name + "'"
    );
  }
}

function isDestination(target) {
  return args.destination !== null &&
    target.account_name === args.destination.account_name &&
    target.name === args.destination.name;
}

function apply(msg, target) {
  if (args.action === 'mark_read') {
    if (!msg.readStatus()) {
      msg.readStatus = true;
    }
  } else if (args.action === 'delete') {
    Mail.delete(msg);
  } else if (args.action === 'move') {
    if (!isDestination(target)) {
      Mail.move(msg, {to: destination});
    }
  }
}

for (let t = 0; t < args.targets.length && remaining.length > 0; t++) {
  const target = args.targets[t];
  const mailbox = findMailbox(target.account_name, target.name);
  if (!mailbox) {
    continue;
  }

  let ids;
  try {
    ids = mailbox.messages.messageId();
  } catch (e) {
    continue;
  }

  // Walk from the end so removals do not shift unvisited indexes
  for (let j = ids.length - 1; j >= 0 && remaining.length > 0; j--) {
    const idx = remaining.indexOf(ids[j]);
    if (idx === -1) {
      continue;
    }
    remaining.splice(idx, 1);
    try {
      apply(mailbox.messages[j], target);
      succeeded.push(ids[j]);
    } catch (e) {
      failures.push({message_id: ids[j], error: e.toString()});
    }
  }
}

return {succeeded: succeeded, failures: failures, missing: remaining};
""",
    Operation.SEND_MAIL: """
let senderAddress = null;

if (args.account_name !== null) {
  const account = findAccount(args.account_name);
  if (account) {
    const addresses = account.emailAddresses();
    if (addresses.length > 0) {
      senderAddress = addresses[0].toString();
    }
  }
  if (!senderAddress) {
    throw new Error("Account '" + args.account_name + "' not found or has no email addresses");
  }
}

const msg = Mail.OutgoingMessage({
  subject: args.subject,
  content: args.body,
  visible: false
});
Mail.outgoingMessages.push(msg);

for (let i = 0; i < args.to.length; i++) {
  msg.toRecipients.push(Mail.Recipient({address: args.to[i]}));
}
for (let i = 0; i < args.cc.length; i++) {
  msg.ccRecipients.push(Mail.Recipient({address: args.cc[i]}));
}
for (let i = 0; i < args.bcc.length; i++) {
  msg.bccRecipients.push(Mail.Recipient({address: args.bcc[i]}));
}

if (senderAddress) {
  msg.sender = senderAddress;
}

msg.send();

return 'Email sent successfully to ' + args.to.join(', ');
""",
}


def render(command: Command) -> str:
    """
    Render a command into a JXA program body.

    The result is meant to be wrapped by the bridge harness, which supplies the
    ``run()`` entry point and the JSON serialization of the return value.

    Args:
        command: The command to render

    Returns:
        JavaScript source text
    """
    args = jxa_literal(command.model_dump(mode='json'))
    return f'{PRELUDE}\nconst args = {args};\n{_BODIES[command.op]}'
