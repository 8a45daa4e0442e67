"""
Parish communications delivery.

Turns queued message sends into per-recipient delivery attempts:
- Conditional claim so overlapping batch runs never process a job twice
- Exponential backoff capped at one hour between attempts
- Recipient-scoped retries that never re-contact delivered members
- Terminal failure after a fixed number of attempts
"""
