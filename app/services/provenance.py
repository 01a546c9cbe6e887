from typing import Dict, Optional, Set, Tuple
from loguru import logger
from sqlmodel import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.db.schema import ProductBatch
from app.models.provenance import (
    NodeType, ProvenanceNode, ProvenanceTree, TruncatedBranch, TruncationReason
)
from app.services.batch import BatchService


class ProvenanceTreeBuilder:
    """
    Read-only reconstruction of a token's bill of materials.

    Each node is built from the batch anchored to the token plus its
    template and plant, so the result renders without further lookups.
    Every token is expanded at most once per tree; later occurrences are
    listed as `repeated` and still count their subtree carbon. Cycles, the
    depth limit, the node budget and components with no anchored batch do
    not fail the tree; they are listed under the parent's `truncated`.
    """

    def __init__(self, session: Session):
        self.session = session
        self.batches = BatchService(session)
        self._node_count = 0
        self._max_nodes = settings.tree_max_nodes
        # token id -> (subtree carbon, batch quantity) of expanded nodes
        self._expanded: Dict[int, Tuple[float, int]] = {}

    def build_tree(self, root_token_id: int, max_depth: Optional[int] = None) -> ProvenanceTree:
        if max_depth is None:
            max_depth = settings.tree_max_depth
        if max_depth < 0:
            raise ValidationError("max_depth must not be negative.")
        max_depth = min(max_depth, settings.tree_depth_ceiling)

        root_batch = self.batches.get_by_token_id(root_token_id)
        if not root_batch:
            raise NotFoundError("No batch is anchored to this token.",
                                token_id=root_token_id)

        self._node_count = 0
        self._max_nodes = settings.tree_max_nodes
        self._expanded = {}
        root = self._build_node(
            root_batch, depth=0, max_depth=max_depth, path={root_token_id})

        return ProvenanceTree(
            root_token_id=root_token_id,
            max_depth=max_depth,
            node_count=self._node_count,
            root=root,
        )

    def _build_node(
        self,
        batch: ProductBatch,
        depth: int,
        max_depth: int,
        path: Set[int],
        consumed_quantity: Optional[int] = None
    ) -> ProvenanceNode:
        self._node_count += 1
        template = batch.template
        plant = batch.plant

        node = ProvenanceNode(
            name=template.template_name,
            node_type=self._node_type(depth, template.is_raw_material),
            token_id=batch.token_id,
            batch_number=batch.batch_number,
            quantity=batch.quantity,
            consumed_quantity=consumed_quantity,
            carbon_footprint=batch.carbon_footprint,
            carbon_footprint_per_unit=template.carbon_footprint_per_unit,
            subtree_carbon_footprint=batch.carbon_footprint,
            weight=template.weight,
            materials=list(template.materials or []),
            description=template.description,
            image_url=template.image_url,
            plant_name=plant.plant_name if plant else None,
            location=f"{plant.city}, {plant.country}" if plant else None,
            latitude=plant.latitude if plant else None,
            longitude=plant.longitude if plant else None,
            production_date=batch.production_date,
            is_raw_material=template.is_raw_material,
            manufacturer_address=batch.manufacturer_address,
            tx_hash=batch.tx_hash,
        )

        for component in batch.components or []:
            token_id = component["token_id"]
            quantity = component.get("quantity")
            subtree = None

            if token_id in path:
                logger.warning(
                    f"Cycle at token {token_id} under {batch.token_id}; branch truncated")
                reason = TruncationReason.CYCLE
            elif token_id in self._expanded:
                reason = TruncationReason.REPEATED
                subtree, child_quantity = self._expanded[token_id]
                node.subtree_carbon_footprint += self._attributed(
                    subtree, child_quantity, quantity)
            elif depth + 1 > max_depth:
                reason = TruncationReason.MAX_DEPTH
            elif self._node_count >= self._max_nodes:
                reason = TruncationReason.NODE_LIMIT
            else:
                child_batch = self.batches.get_by_token_id(token_id)
                if child_batch is None:
                    reason = TruncationReason.UNRESOLVED
                else:
                    path.add(token_id)
                    child = self._build_node(
                        child_batch, depth + 1, max_depth, path, quantity)
                    path.remove(token_id)

                    node.children.append(child)
                    node.subtree_carbon_footprint += self._attributed(
                        child.subtree_carbon_footprint, child.quantity, quantity)
                    continue

            node.truncated.append(TruncatedBranch(
                token_id=token_id,
                reason=reason,
                token_name=component.get("token_name"),
                quantity=quantity,
                carbon_footprint=component.get("carbon_footprint"),
                subtree_carbon_footprint=subtree,
            ))
            if reason != TruncationReason.REPEATED:
                node.subtree_carbon_footprint += component.get("carbon_footprint") or 0.0

        self._expanded[batch.token_id] = (node.subtree_carbon_footprint, batch.quantity)
        return node

    @staticmethod
    def _attributed(subtree: float, child_quantity: int, consumed: Optional[int]) -> float:
        """Share of the child's subtree footprint carried by the consumed units."""
        if not consumed or not child_quantity:
            return subtree
        share = min(consumed, child_quantity) / child_quantity
        return subtree * share

    @staticmethod
    def _node_type(depth: int, is_raw_material: bool) -> NodeType:
        if is_raw_material:
            return NodeType.RAW_MATERIAL
        if depth == 0:
            return NodeType.PRODUCT
        return NodeType.COMPONENT
