from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from commercial_core.cascade import combine
from commercial_core.data import windows_payload
from commercial_core.filters import AnalysisFilters
from commercial_core.hierarchy import build_tree, iter_nodes, tree_to_dicts


def compute_hierarchy(filters: AnalysisFilters, ctx: Dict[str, Any], include_transactions: bool = False) -> Dict[str, Any]:
    tree = build_tree(ctx.get("current_records", []), filters.dimension_path, ctx.get("mapping"))
    return {
        "filters": asdict(filters),
        "windows": windows_payload(ctx),
        "dimension_path": list(filters.dimension_path),
        "total": combine(n.cascade for n in tree).to_dict(),
        "node_count": sum(1 for _ in iter_nodes(tree)),
        "tree": tree_to_dicts(tree, include_transactions),
    }
