"""
Coin Kernel - ledger and approval engine for brand-linked reward coins

A transactional coin ledger with:
- Validated earn/redeem submissions
- Admin approval state machine with at-most-once balance effects
- Ordered dependency between earn and redeem approval
- Idempotent payment settlement
- Welcome bonus and administrative adjustments
"""

__version__ = "0.1.0"
