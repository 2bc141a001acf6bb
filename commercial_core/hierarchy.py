from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from commercial_core.cascade import CascadeResult, cascade_many, combine
from commercial_core.fields import (
    ColumnMapping,
    Field,
    FieldName,
    UNSPECIFIED,
    Record,
    as_records,
    as_text,
    field_name,
)


logger = logging.getLogger(__name__)

COMMERCIAL_PATH: Tuple[Field, ...] = (Field.STATE, Field.MANAGER, Field.SALESPERSON, Field.PRODUCT)
SUPPLIER_PATH: Tuple[Field, ...] = (Field.SUPPLIER, Field.PRODUCT)
CUSTOMER_PATH: Tuple[Field, ...] = (Field.CUSTOMER_ID, Field.PRODUCT)
REGIONAL_PATH: Tuple[Field, ...] = (Field.REGION, Field.SALESPERSON)

PRESET_PATHS: Dict[str, Tuple[Field, ...]] = {
    "commercial": COMMERCIAL_PATH,
    "supplier": SUPPLIER_PATH,
    "customer": CUSTOMER_PATH,
    "regional": REGIONAL_PATH,
}


@dataclass
class HierarchyNode:
    id: str
    key: str
    label: str
    level: str
    depth: int
    identity: Optional[str] = None
    cascade: CascadeResult = field(default_factory=CascadeResult)
    children: List["HierarchyNode"] = field(default_factory=list)
    transactions: List[Record] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    def to_dict(self, include_transactions: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "key": self.key,
            "label": self.label,
            "level": self.level,
            "depth": self.depth,
            "identity": self.identity,
            "cascade": self.cascade.to_dict(),
            "transaction_count": self.transaction_count,
            "children": [c.to_dict(include_transactions) for c in self.children],
        }
        if include_transactions:
            out["transactions"] = [dict(t) if isinstance(t, Mapping) else t for t in self.transactions]
        return out


def _is_customer_level(dimension: FieldName) -> bool:
    return field_name(dimension) == Field.CUSTOMER_ID.value


def _id_segment(key: str) -> str:
    """Escape the id separator so distinct keys never collide once joined."""
    return key.replace("%", "%25").replace("/", "%2F")


def _group_key(record: Record, dimension: FieldName, mapping: Optional[ColumnMapping], missing_label: str) -> Tuple[str, str]:
    """(key, label) of a record at one level."""
    key = as_text(record, dimension, mapping, missing_label)
    if _is_customer_level(dimension):
        label = as_text(record, Field.CUSTOMER_NAME, mapping, key)
        return key, label
    return key, key


def _build_level(
    records: Sequence[Record],
    path: Sequence[FieldName],
    depth: int,
    parent_id: str,
    mapping: Optional[ColumnMapping],
    missing_label: str,
) -> List[HierarchyNode]:
    dimension = path[depth]
    level = field_name(dimension)
    nodes: Dict[str, HierarchyNode] = {}
    for record in records:
        key, label = _group_key(record, dimension, mapping, missing_label)
        node = nodes.get(key)
        if node is None:
            segment = _id_segment(key)
            node_id = f"{parent_id}/{segment}" if parent_id else segment
            node = HierarchyNode(
                id=node_id,
                key=key,
                label=label,
                level=level,
                depth=depth,
                identity=key if _is_customer_level(dimension) else None,
            )
            nodes[key] = node
        elif node.identity is not None and node.label == node.key and label != key:
            # first non-empty name wins
            node.label = label
        node.transactions.append(record)

    last_level = depth == len(path) - 1
    for node in nodes.values():
        if last_level:
            node.cascade = cascade_many(node.transactions, mapping)
            continue
        node.children = _build_level(node.transactions, path, depth + 1, node.id, mapping, missing_label)
        node.cascade = combine(c.cascade for c in node.children)

    # sorted() is stable: equal revenue keeps first-seen order
    return sorted(nodes.values(), key=lambda n: n.cascade.gross_revenue, reverse=True)


def build_tree(
    records: Iterable[Record],
    dimension_path: Sequence[FieldName],
    mapping: Optional[ColumnMapping] = None,
    *,
    missing_label: str = UNSPECIFIED,
) -> List[HierarchyNode]:
    """Group records along ``dimension_path`` and consolidate cascades bottom-up.

    Leaves run ``cascade_many`` over the records they own; every internal node
    is the ``combine`` of its children, so a parent's monetary totals equal the
    sum of its children's. Siblings are ordered by descending ROB.
    """
    rows = as_records(records)
    path = list(dimension_path or [])
    if not rows or not path:
        logger.warning("build_tree called with %d records and %d levels; returning empty tree", len(rows), len(path))
        return []

    tree = _build_level(rows, path, 0, "", mapping, missing_label)
    logger.info(
        "built hierarchy path=%s roots=%d records=%d",
        ">".join(field_name(d) for d in path),
        len(tree),
        len(rows),
    )
    return tree


def resolve_path(path: Any) -> Tuple[FieldName, ...]:
    """A preset name (``"commercial"``) or an explicit list of field names."""
    if isinstance(path, str):
        preset = PRESET_PATHS.get(path.strip().lower())
        if preset is not None:
            return preset
        return tuple(p.strip() for p in path.split(",") if p.strip())
    return tuple(path or ())


def iter_nodes(tree: Iterable[HierarchyNode]) -> Iterator[HierarchyNode]:
    for node in tree:
        yield node
        yield from iter_nodes(node.children)


def tree_to_dicts(tree: Iterable[HierarchyNode], include_transactions: bool = False) -> List[Dict[str, Any]]:
    return [n.to_dict(include_transactions) for n in tree]
