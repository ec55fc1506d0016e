"""Database models — canonical shape of the relations the inbox reads.

Import from here:  from quotehub.models import Quote, QuoteMessage, ...
The inbox itself queries through store/ against whatever shape a deployment
actually has; these models describe the current schema.
"""

from .base import Base  # noqa: F401

# Parties
from .parties import Customer, QuoteInvite, Supplier, SupplierBid  # noqa: F401

# Quotes & messages
from .quotes import Quote, QuoteMessage, QuoteMessageRead  # noqa: F401

# Kickoff
from .kickoff import QuoteKickoffTask  # noqa: F401
