"""
routers/inbox.py — Role inbox endpoints

Lists the RFQ message threads a logged-in customer, supplier or admin can
see, newest activity first, with who owes the next reply.

Business Rules:
- The session role must match the requested inbox (403 otherwise)
- Engine failures never surface as 5xx: rows=[] plus an error string

Called by: main.py (router mount)
Depends on: services/inbox_service.py, dependencies.py
"""

from fastapi import APIRouter, Depends
from loguru import logger

from ..dependencies import get_inbox_options, get_store, require_admin, require_customer, require_supplier
from ..schemas.inbox import InboxResponse
from ..services.inbox_service import load_inbox
from ..services.store_calls import InboxOptions
from ..services.visibility import Viewer
from ..store import ThreadStore

router = APIRouter(tags=["inbox"])


async def _inbox_response(store: ThreadStore, viewer: Viewer, options: InboxOptions) -> dict:
    try:
        rows = await load_inbox(store, viewer, options=options)
        return InboxResponse(rows=rows).model_dump()
    except Exception as e:
        logger.error(f"Failed to load {viewer.role} inbox: {e}")
        return InboxResponse(rows=[], error="Could not load messages — please try again").model_dump()


@router.get("/api/inbox/customer")
async def customer_inbox(
    viewer: Viewer = Depends(require_customer),
    store: ThreadStore = Depends(get_store),
    options: InboxOptions = Depends(get_inbox_options),
):
    """Threads for the customer's own RFQs."""
    return await _inbox_response(store, viewer, options)


@router.get("/api/inbox/supplier")
async def supplier_inbox(
    viewer: Viewer = Depends(require_supplier),
    store: ThreadStore = Depends(get_store),
    options: InboxOptions = Depends(get_inbox_options),
):
    """Threads the supplier was awarded, bid on, was invited to or is assigned."""
    return await _inbox_response(store, viewer, options)


@router.get("/api/inbox/admin")
async def admin_inbox(
    viewer: Viewer = Depends(require_admin),
    store: ThreadStore = Depends(get_store),
    options: InboxOptions = Depends(get_inbox_options),
):
    """Most recently updated threads across all customers."""
    return await _inbox_response(store, viewer, options)
