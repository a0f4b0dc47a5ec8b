"""
Member records, the population snapshot and the family graph.
"""

from member_sync.registry.entities import (
    Commission,
    CoveredMember,
    CustomMessage,
    Lead,
    Member,
    MemberPopulation,
    Policy,
    SpecialOccasion,
)
from member_sync.registry.duplicates import find_duplicates, merge_into
from member_sync.registry.family_graph import FamilyGraphManager, ReconcilePlan, ReliefPlan
from member_sync.registry.link_entities import FamilyNode, build_family_tree

__all__ = [
    "Commission",
    "CoveredMember",
    "CustomMessage",
    "FamilyGraphManager",
    "FamilyNode",
    "Lead",
    "Member",
    "MemberPopulation",
    "Policy",
    "ReconcilePlan",
    "ReliefPlan",
    "SpecialOccasion",
    "build_family_tree",
    "find_duplicates",
    "merge_into",
]
