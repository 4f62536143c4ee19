"""Pydantic models for Apple Mail MCP server with strict validation."""

import pydantic


class BaseModel(pydantic.BaseModel):
    """Base model with strict validation - no extra fields, all fields required unless Optional."""

    model_config = pydantic.ConfigDict(extra='forbid', strict=True)


class Account(BaseModel):
    """A Mail account as reported by Mail at call time."""

    name: str
    email_addresses: list[str]
    enabled: bool
    id: str


class AccountStatus(BaseModel):
    """An account annotated with whether the server's filters keep it in scope."""

    name: str
    email_addresses: list[str]
    enabled: bool
    id: str
    config_status: str  # 'enabled' or 'disabled'


class MailboxRef(BaseModel):
    """One addressable mailbox: the unit of scan plans and move destinations."""

    account_name: str
    name: str


class MailboxRecord(BaseModel):
    """Flat mailbox listing row as returned by the mailbox_stats command."""

    name: str
    parent: str | None = None
    message_count: int
    sampled: int  # Number of messages whose read status was inspected
    sampled_unread: int


class MailboxNode(BaseModel):
    """A node of the mailbox hierarchy."""

    name: str
    message_count: int
    unread_count: int
    unread_estimated: bool = False  # True when extrapolated from a sample
    virtual: bool = False  # True for parents that were never enumerated directly
    path: str
    parent: str | None = None
    children: list[str] = []
    account_name: str


class MailboxHierarchy(BaseModel):
    """Mailbox forest for one account, keyed by mailbox name."""

    tree: dict[str, MailboxNode]
    roots: list[str]
    total: int


class EmailMessage(BaseModel):
    """A message snapshot. Content may be truncated or empty."""

    id: str  # Mail's numeric id, changes when the message moves
    message_id: str  # Protocol Message-ID, stable across mailboxes
    subject: str
    sender: str
    recipients: list[str]
    date_sent: str  # ISO-8601
    date_received: str  # ISO-8601
    content: str
    is_read: bool
    is_flagged: bool
    mailbox: str
    account_name: str


class OperationResult(BaseModel):
    """Result of a bulk operation: partial success plus one error per failure."""

    succeeded_count: int
    errors: list[str]


class SearchScope(BaseModel):
    """Bounds a search trades completeness for latency against."""

    account_limit: int
    mailbox_scan_limit: int
    messages_per_mailbox: int
    priority_names: list[str]


class SendMailRequest(BaseModel):
    """Parameters of an outgoing message. Address fields may be comma-separated."""

    to: str
    subject: str
    body: str
    account_name: str | None = None
    cc: str | None = None
    bcc: str | None = None


class EmailSentResult(BaseModel):
    """Result of sending an email."""

    confirmation: str
    to: str
    subject: str
    body_preview: str  # First 200 chars
    account_name: str | None = None
    cc: str | None = None
    bcc: str | None = None


class MoveResult(BaseModel):
    """Result of moving emails to another mailbox."""

    moved: int
    target_mailbox: str
    target_account: str | None = None
    errors: list[str]
