"""Distribution domain schemas.

This package contains all Pydantic models for the distribution domain layer:
- Base types and conventions
- Share classes and capital-provider positions
- Waterfall structures, promote tiers and templates
- Engine and store configuration
- Distribution results
- Audit records (snapshots, hash-chained deal events)

Usage:
    from distribution_domain.schemas import (
        WaterfallStructure, PromoteTier, ShareClass, CapitalProviderPosition,
        WaterfallCFG, DistributionResult, Snapshot, AuditEvent
    )
"""

# Base types
from .base import (
    DomainModel,
    FrozenDomainModel,
    MoneyAmount,
    SignedMoneyAmount,
    Rate,
    Percentage,
    OwnershipWeight,
    Multiple,
    DealId,
    PositionId,
    ShareClassCode,
)

# Share classes and positions
from .share_classes import (
    ShareClass,
    UNCLASSIFIED_PRIORITY,
    UNCLASSIFIED_CLASS_CODE,
    UNCLASSIFIED_SHARE_CLASS,
    unclassified_share_class,
)
from .positions import CapitalProviderPosition

# Waterfall structure
from .structure import (
    PromoteTier,
    WaterfallStructure,
    WaterfallTemplate,
    DEFAULT_TERMINAL_TIER,
    DEFAULT_PROMOTE_TIERS,
    DEFAULT_PREFERRED_RETURN,
    WATERFALL_TEMPLATES,
    create_default_structure,
)

# Configuration
from .config import (
    WaterfallCFG,
    AuditStoreCFG,
    CashFlowScenario,
)

# Results
from .results import (
    ClassPeriodAllocation,
    PeriodDistribution,
    LookbackAdjustment,
    DistributionSummary,
    ClassSummary,
    ClassTerms,
    AppliedTerms,
    DistributionResult,
)

# Audit records
from .records import (
    Actor,
    SYSTEM_ACTOR,
    Snapshot,
    SnapshotVerification,
    AuditEvent,
    ChainIssue,
    ChainVerification,
)

__all__ = [
    # Base types
    "DomainModel",
    "FrozenDomainModel",
    "MoneyAmount",
    "SignedMoneyAmount",
    "Rate",
    "Percentage",
    "OwnershipWeight",
    "Multiple",
    "DealId",
    "PositionId",
    "ShareClassCode",
    # Share classes and positions
    "ShareClass",
    "UNCLASSIFIED_PRIORITY",
    "UNCLASSIFIED_CLASS_CODE",
    "UNCLASSIFIED_SHARE_CLASS",
    "unclassified_share_class",
    "CapitalProviderPosition",
    # Structure
    "PromoteTier",
    "WaterfallStructure",
    "WaterfallTemplate",
    "DEFAULT_TERMINAL_TIER",
    "DEFAULT_PROMOTE_TIERS",
    "DEFAULT_PREFERRED_RETURN",
    "WATERFALL_TEMPLATES",
    "create_default_structure",
    # Configuration
    "WaterfallCFG",
    "AuditStoreCFG",
    "CashFlowScenario",
    # Results
    "ClassPeriodAllocation",
    "PeriodDistribution",
    "LookbackAdjustment",
    "DistributionSummary",
    "ClassSummary",
    "ClassTerms",
    "AppliedTerms",
    "DistributionResult",
    # Audit records
    "Actor",
    "SYSTEM_ACTOR",
    "Snapshot",
    "SnapshotVerification",
    "AuditEvent",
    "ChainIssue",
    "ChainVerification",
]
