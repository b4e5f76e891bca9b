"""Models package."""

from .user import User
from .project import WebsiteProject
from .conversation import ConversationEntry
from .version import Version
from .transaction import Transaction
from .credit_ledger import CreditLedger
