"""Mailbox-style messaging: conversations, notifications and delivery receipts."""
