"""
Membership services.

Orchestrators for the on-chain lifecycle of a member:
- registration: join an existing group or create one
- advance_cashout: settle a completed group
- token_approval: allowance management
- referral: referral codes and invite links
"""
