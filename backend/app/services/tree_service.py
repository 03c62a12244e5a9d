from __future__ import annotations

import logging
import threading
from functools import lru_cache
from itertools import count
from pathlib import Path
from typing import Optional

from ..core.config import get_settings
from ..models.samples import AggregatedSample, AggregationResult, RenderState
from ..models.tree import TreeEdge, TreeMetadata, TreeNode, TreePayload
from .aggregation import aggregate
from .newick import parse_file
from .sample_store import SampleStore
from .selection import SelectionController
from .tree_model import PhyloTree

logger = logging.getLogger(__name__)

# (path, mtime_ns, size) of a loaded file, or (None, None, None) when nothing was configured.
SourceKey = tuple[Optional[Path], Optional[int], Optional[int]]


def _source_key(path: Optional[Path]) -> SourceKey:
    if path is None or not path.exists():
        return (path, None, None)
    stat = path.stat()
    return (path.resolve(), stat.st_mtime_ns, stat.st_size)


class PhyloMapService:
    """Service layer holding the loaded tree, its samples and the current selection.

    Route handlers run in a threadpool, so every read or write of the cached
    tree, samples, controller and render state happens under ``_lock``.
    """

    def __init__(
        self,
        tree_path: Optional[Path] = None,
        samples_path: Optional[Path] = None,
    ) -> None:
        settings = get_settings()
        self.tree_path = tree_path or settings.default_tree_path
        if self.tree_path is not None:
            self.tree_path = Path(self.tree_path)
        self.samples_path = samples_path or settings.default_samples_path
        if self.samples_path is not None:
            self.samples_path = Path(self.samples_path)
        self.data_dir = settings.data_dir

        self.render_state = RenderState()
        self._lock = threading.RLock()
        self._sequence = count(1)
        self._tree: Optional[PhyloTree] = None
        self._tree_source: Optional[SourceKey] = None
        self._samples: Optional[SampleStore] = None
        self._samples_source: Optional[SourceKey] = None
        self._controller: Optional[SelectionController] = None

    def _resolve(self, filename: Optional[str], default: Optional[Path]) -> Optional[Path]:
        if filename:
            candidate = Path(filename)
            if candidate.exists():
                return candidate
            if not candidate.is_absolute():
                candidate = self.data_dir / candidate
            return candidate
        return default

    def resolve_tree_path(self, filename: Optional[str] = None) -> Path:
        path = self._resolve(filename, self.tree_path)
        if path is None:
            raise FileNotFoundError(
                "No tree path provided. Upload a tree or set PHYLOMAP_TREE_PATH."
            )
        return path

    def resolve_samples_path(self, filename: Optional[str] = None) -> Optional[Path]:
        return self._resolve(filename, self.samples_path)

    def load_tree(self, filename: Optional[str] = None) -> PhyloTree:
        path = self.resolve_tree_path(filename)
        with self._lock:
            source = _source_key(path)
            if self._tree is not None and source == self._tree_source:
                return self._tree

            logger.info("Loading Newick tree", extra={"tree_path": str(path)})
            tree = PhyloTree(parse_file(path), name=path.stem)
            logger.info(
                "Tree parsed",
                extra={
                    "tree_path": str(path),
                    "node_count": len(tree),
                    "tip_count": tree.count_leaves_under(tree.root),
                },
            )

            self._tree = tree
            self._tree_source = source
            self._reset_selection()
            return tree

    def load_samples(self, filename: Optional[str] = None) -> SampleStore:
        path = self.resolve_samples_path(filename)
        with self._lock:
            source = _source_key(path)
            if self._samples is not None and source == self._samples_source:
                return self._samples

            if path is None:
                logger.info("No sample table configured; tips will have no samples")
                store = SampleStore.empty()
            else:
                store = SampleStore.from_table(path)

            self._samples = store
            self._samples_source = source
            self._reset_selection()
            return store

    def forget(self, path: Path) -> None:
        """Drop a cached tree or sample table that was read from ``path``."""

        resolved = Path(path).resolve()
        with self._lock:
            if self._tree_source is not None and self._tree_source[0] == resolved:
                logger.info("Tree file replaced", extra={"tree_path": str(path)})
                self._tree = None
                self._tree_source = None
                self._reset_selection()
            if self._samples_source is not None and self._samples_source[0] == resolved:
                logger.info("Sample table replaced", extra={"table_path": str(path)})
                self._samples = None
                self._samples_source = None
                self._reset_selection()

    @property
    def tree(self) -> PhyloTree:
        with self._lock:
            if self._tree is None:
                return self.load_tree()
            return self._tree

    @property
    def samples(self) -> SampleStore:
        with self._lock:
            if self._samples is None:
                return self.load_samples()
            return self._samples

    @property
    def controller(self) -> SelectionController:
        with self._lock:
            if self._controller is None:
                self._controller = SelectionController(
                    self.tree,
                    self.samples,
                    update_summary=self._show_summary,
                    update_map=self._show_markers,
                    clear=self._clear_render,
                    sequence=self._sequence,
                )
            return self._controller

    def build_payload(self) -> TreePayload:
        with self._lock:
            tree = self.tree
            samples = self.samples
        ordered = list(tree.iter_nodes())
        depths = tree.depths()

        # Children come after their parent in pre-order, so walking backwards
        # sees every child before the parent.
        leaf_counts: dict[str, int] = {}
        sample_counts: dict[str, int] = {}
        for node in reversed(ordered):
            node_id = tree.node_id(node)
            if tree.is_leaf(node):
                leaf_counts[node_id] = 1
                sample_counts[node_id] = samples.count_for(node.name)
                continue
            child_ids = [tree.node_id(child) for child in node.children]
            leaf_counts[node_id] = sum(leaf_counts[child_id] for child_id in child_ids)
            sample_counts[node_id] = sum(sample_counts[child_id] for child_id in child_ids)

        nodes: list[TreeNode] = []
        edges: list[TreeEdge] = []
        for node in ordered:
            node_id = tree.node_id(node)
            parent = tree.parent(node)
            parent_id = tree.node_id(parent) if parent is not None else None
            nodes.append(
                TreeNode(
                    id=node_id,
                    name=node.name,
                    parent_id=parent_id,
                    branch_length=node.branch_length,
                    distance_from_root=depths[node],
                    is_leaf=tree.is_leaf(node),
                    leaf_count=leaf_counts[node_id],
                    sample_count=sample_counts[node_id],
                )
            )
            if parent_id is not None:
                edges.append(TreeEdge(parent_id=parent_id, child_id=node_id))

        root_id = tree.node_id(tree.root)
        missing = samples.missing_taxa(tree.leaf_names())
        if missing and len(samples):
            logger.info(
                "Tips without recorded samples",
                extra={"missing": len(missing), "tips": leaf_counts[root_id]},
            )

        metadata = TreeMetadata(
            name=tree.name,
            height=max(depths.values()) if depths else None,
            tip_count=leaf_counts[root_id],
            sample_count=sample_counts[root_id],
        )
        return TreePayload(nodes=nodes, edges=edges, metadata=metadata)

    def aggregate(self, node_id: str) -> AggregationResult:
        with self._lock:
            tree = self.tree
            samples = self.samples
        node = tree.get(node_id)
        return aggregate(node, samples.samples, samples.metadata, node_id=node_id)

    def select(self, node_id: str) -> AggregationResult:
        with self._lock:
            return self.controller.on_select(node_id)

    def rerender(self) -> Optional[AggregationResult]:
        with self._lock:
            if self._controller is None:
                return None
            return self._controller.rerender()

    def snapshot(self) -> RenderState:
        """Copy of the render state that later selections cannot change."""

        with self._lock:
            return self.render_state.model_copy(deep=True)

    def _reset_selection(self) -> None:
        self._controller = None
        self.render_state = RenderState()

    def _clear_render(self) -> None:
        self.render_state.summary = None
        self.render_state.markers = []

    def _show_summary(self, result: AggregationResult) -> None:
        self.render_state.summary = result

    def _show_markers(self, samples: list[AggregatedSample]) -> None:
        self.render_state.markers = list(samples)
        self.render_state.render_count += 1


@lru_cache(maxsize=1)
def get_phylomap_service() -> PhyloMapService:
    return PhyloMapService()
