"""
schemas/inbox.py — Pydantic models for the message inbox endpoints

Business Rules:
- InboxRow is one visible thread with at least one message
- needs_reply_from is exactly one of customer/supplier/admin/none/unknown
- kickoff_status is n/a until the quote has a winner

Called by: services/inbox_service.py, routers/inbox.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

RoleView = Literal["customer", "supplier", "admin"]
NeedsReplyFrom = Literal["customer", "supplier", "admin", "none", "unknown"]
KickoffStatus = Literal["not_started", "in_progress", "complete", "n/a"]


class InboxRow(BaseModel):
    quote_id: str
    rfq_label: str
    role_view: RoleView
    last_message_at: str
    last_message_preview: str = "—"
    needs_reply_from: NeedsReplyFrom = "unknown"
    unread_count: int = 0
    quote_status: str = ""
    has_winner: bool = False
    kickoff_status: KickoffStatus = "n/a"


class InboxResponse(BaseModel):
    rows: list[InboxRow] = []
    error: str | None = None
