from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class TreeNode(BaseModel):
    id: str
    name: str = Field(..., description="Taxon label for tips; supplied or synthesized label for internal nodes.")
    parent_id: Optional[str] = Field(default=None, description="Identifier of the parent node; the root has no parent.")
    branch_length: Optional[float] = Field(default=None, description="Branch length leading to this node.")
    distance_from_root: float = Field(..., description="Sum of branch lengths from the root to this node.")
    is_leaf: bool = False
    leaf_count: int = Field(default=1, ge=1, description="Number of tips below this node (1 for a tip).")
    sample_count: int = Field(default=0, ge=0, description="Number of geographic samples below this node.")


class TreeEdge(BaseModel):
    parent_id: str
    child_id: str


class TreeMetadata(BaseModel):
    name: Optional[str] = None
    height: Optional[float] = None
    tip_count: int = 0
    sample_count: int = 0


class TreePayload(BaseModel):
    nodes: List[TreeNode]
    edges: List[TreeEdge]
    metadata: TreeMetadata
