"""Base classes and type system for distribution domain models.

This module provides the foundational types, validators, and base classes
used throughout the waterfall and audit schema system.
"""

from decimal import Decimal
from typing import Annotated
from pydantic import BaseModel, Field, ConfigDict

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all domain models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Support for Decimal and datetime types
    - Enum value serialization
    """

    model_config = ConfigDict(
        frozen=False,  # Allow mutation for computed fields
        validate_assignment=True,  # Validate on field assignment
        use_enum_values=True,  # Use enum values in JSON
        arbitrary_types_allowed=True,  # Allow Decimal, datetime, etc.
    )


class FrozenDomainModel(DomainModel):
    """Domain model that cannot be mutated after construction.

    Used for audit records (snapshots, events) whose content is hashed.
    """

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Type Aliases - Numeric
# =============================================================================

MoneyAmount = Annotated[
    Decimal,
    Field(ge=0, description="Currency amount (non-negative)")
]

SignedMoneyAmount = Annotated[
    Decimal,
    Field(description="Currency amount that may be negative (e.g. a period cash flow)")
]

Rate = Annotated[
    Decimal,
    Field(ge=0, description="Periodic rate as decimal (0.08 = 8%), not capped at 1")
]

Percentage = Annotated[
    Decimal,
    Field(ge=0, le=1, description="Percentage as decimal (0.0 to 1.0)")
]

OwnershipWeight = Annotated[
    Decimal,
    Field(ge=0, description="Ownership weight (percent points or fraction; only compared within a class)")
]

Multiple = Annotated[
    Decimal,
    Field(ge=0, description="Multiplier value (e.g., 2x = 2.0)")
]


# =============================================================================
# ID Conventions
# =============================================================================

DealId = Annotated[
    str,
    Field(min_length=1, description="Deal identifier (UUID or user-defined)")
]

PositionId = Annotated[
    str,
    Field(min_length=1, description="Capital-provider position identifier (e.g., the LP actor id)")
]

ShareClassCode = Annotated[
    str,
    Field(
        min_length=1,
        description="Share class code, unique within a deal (e.g., 'A', 'P', 'SENIOR')"
    )
]


# =============================================================================
# ID Examples and Conventions
# =============================================================================
#
# Deal IDs:
#   - UUIDs: "550e8400-e29b-41d4-a716-446655440000"
#   - Or descriptive in tests: "deal_riverside"
#
# Position IDs:
#   - The LP actor id of the holder: "lp_pension_fund", "lp1"
#
# Share Class Codes:
#   - "P" - Preferred (priority 1)
#   - "A" - Class A (priority 2)
#   - "NONE" - reserved for positions without a share class
#
# =============================================================================
