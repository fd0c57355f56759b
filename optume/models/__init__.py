from .team import Team
from .team_member import TeamMember, ROLE_OWNER, ROLE_MEMBER
from .user import User, ROLE_ADMIN, ROLE_USER
from .subscription import Subscription
from .billing_customer import BillingCustomer
from .billing_event import BillingEventLog
from .message import Message
from .message_like import MessageLike

__all__ = [
    "Team",
    "TeamMember",
    "User",
    "Subscription",
    "BillingCustomer",
    "BillingEventLog",
    "Message",
    "MessageLike",
    "ROLE_OWNER",
    "ROLE_MEMBER",
    "ROLE_ADMIN",
    "ROLE_USER",
]
