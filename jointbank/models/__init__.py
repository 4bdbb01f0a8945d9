"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from jointbank.models directly
"""

from jointbank.models.user import User  # noqa: F401
from jointbank.models.joint_account import (  # noqa: F401
    AccountStatus,
    AccountType,
    JointAccount,
    JointOwner,
    OwnerRole,
)
from jointbank.models.transaction import (  # noqa: F401
    Transaction,
    TransactionStatus,
    TransactionType,
)
