from __future__ import annotations

import logging
from itertools import count
from typing import Callable, Iterator, Optional, Union

from ..models.samples import AggregatedSample, AggregationResult
from .aggregation import aggregate
from .newick import Clade
from .sample_store import SampleStore
from .tree_model import PhyloTree

logger = logging.getLogger(__name__)

SummarySink = Callable[[AggregationResult], None]
MapSink = Callable[[list[AggregatedSample]], None]


class SelectionController:
    """Turn node selections into aggregation results pushed to the display sinks.

    Only the last result is kept so a map re-render can reuse it. Every
    result is stamped with a sequence number larger than any earlier one;
    pass a shared ``sequence`` iterator to keep stamps increasing across
    controllers.
    """

    def __init__(
        self,
        tree: PhyloTree,
        samples: SampleStore,
        update_summary: SummarySink,
        update_map: MapSink,
        clear: Optional[Callable[[], None]] = None,
        sequence: Optional[Iterator[int]] = None,
    ) -> None:
        self.tree = tree
        self.samples = samples
        self._update_summary = update_summary
        self._update_map = update_map
        self._clear = clear
        self._sequence = sequence if sequence is not None else count(1)
        self._current: Optional[AggregationResult] = None

    @property
    def current(self) -> Optional[AggregationResult]:
        return self._current

    def on_select(self, node: Union[Clade, str]) -> AggregationResult:
        if isinstance(node, str):
            node = self.tree.get(node)
        node_id = self.tree.node_id(node)

        if self._clear is not None:
            self._clear()
        self._current = None

        result = aggregate(
            node,
            self.samples.samples,
            self.samples.metadata,
            node_id=node_id,
        ).model_copy(update={"sequence": next(self._sequence)})

        logger.info(
            "Node selected",
            extra={
                "node_id": node_id,
                "taxa": result.total_taxa,
                "samples": result.total_samples,
                "sequence": result.sequence,
            },
        )

        self._update_summary(result)
        self._update_map(result.samples)
        self._current = result
        return result

    def rerender(self) -> Optional[AggregationResult]:
        if self._current is None:
            return None
        self._update_map(self._current.samples)
        return self._current
