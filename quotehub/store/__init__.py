"""Record store adapter: capability negotiation plus schema-adaptive reads."""

from .base import ThreadStore  # noqa: F401
from .capabilities import (  # noqa: F401
    KickoffShape,
    MessageShape,
    StoreCapabilities,
    negotiate_capabilities,
    reset_capabilities,
)
from .errors import is_missing_schema_error, serialize_error  # noqa: F401
from .records import (  # noqa: F401
    CustomerRecord,
    KickoffTaskRow,
    MessageRow,
    PreviewRow,
    ReadMarker,
    SupplierRecord,
    ThreadRecord,
)
from .sql import SqlThreadStore  # noqa: F401
