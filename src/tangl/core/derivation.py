from __future__ import annotations

"""
Product Derivation Engine.

Merges a list of features into the checked-out product branch. With merge
order optimization the features are first checked pairwise for conflicts;
the pairs that merge cleanly form an undirected graph whose maximum clique
is merged first. Progress is checkpointed as empty commits on the product
branch so a derivation stopped by a conflict can be continued after manual
resolution or aborted back to its starting commit.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

import networkx as nx

from tangl.core.conflict_checker import ConflictChecker
from tangl.domain.config import DEFAULT_TEMPORARY_BRANCH_PREFIX
from tangl.domain.conflict_models import ConflictStatistics
from tangl.domain.derivation_models import (
    DerivationMetadata,
    DerivationState,
    find_last_metadata,
    make_derivation_commit_message,
)
from tangl.domain.errors import ConflictCheckError, DerivationStateError, NamespaceError
from tangl.domain.node_path import AreaPath, ProductPath
from tangl.domain.qualified_path import QualifiedPath
from tangl.domain.tree_models import NodeType, TreeDataModel
from tangl.infra.git import VersionControlBackend

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# RESULT MODEL
# -----------------------------------------------------------------------------

@dataclass
class DerivationReport:
    """
    Outcome of one derivation operation.

    Attributes:
        action: 'started', 'continued', 'aborted' or 'status'.
        metadata: Record after the operation (None if nothing was derived).
        merge_order: Order in which the pass attempted the merges.
        merged: Features merged during this operation.
        remaining: Features still missing afterwards.
        resolving: Feature left merging in the working tree for manual
            conflict resolution.
        reset_to: Commit the product was reset to by an abort.
    """
    action: str
    metadata: Optional[DerivationMetadata] = None
    merge_order: List[QualifiedPath] = field(default_factory=list)
    merged: List[QualifiedPath] = field(default_factory=list)
    remaining: List[QualifiedPath] = field(default_factory=list)
    resolving: Optional[QualifiedPath] = None
    reset_to: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.metadata is not None and self.metadata.is_finished

# -----------------------------------------------------------------------------
# CLIQUE SELECTION
# -----------------------------------------------------------------------------

def build_conflict_graph(
        paths: Sequence[QualifiedPath],
        statistics: ConflictStatistics,
) -> nx.Graph:
    """
    Graph over all paths (by position) with an edge for every OK pair.

    Raises:
        ConflictCheckError: If any statistic is an ERROR.
    """
    if statistics.n_errors() > 0:
        causes = "; ".join(str(s) for s in statistics.iter_errors())
        raise ConflictCheckError(f"Errors occurred while checking for conflicts: {causes}")

    index_of: Dict[QualifiedPath, int] = {p: i for i, p in enumerate(paths)}
    graph = nx.Graph()
    graph.add_nodes_from(range(len(paths)))
    for statistic in statistics.iter_ok():
        left, right = statistic.paths[0], statistic.paths[1]
        graph.add_edge(index_of[left], index_of[right])
    return graph


def find_max_clique(graph: nx.Graph) -> List[int]:
    """First maximal clique of maximum size, members sorted by node id."""
    best: List[int] = []
    for clique in nx.find_cliques(graph):
        if len(clique) > len(best):
            best = clique
    return sorted(best)

# -----------------------------------------------------------------------------
# ENGINE
# -----------------------------------------------------------------------------

class DerivationEngine:
    """
    Derivation state machine for the checked-out product.

    Args:
        backend: Version-control backend.
        model: Namespace tree built from the same backend.
        temporary_prefix: Disposable branch prefix for conflict checks.
    """

    def __init__(
            self,
            backend: VersionControlBackend,
            model: TreeDataModel,
            temporary_prefix: str = DEFAULT_TEMPORARY_BRANCH_PREFIX,
    ) -> None:
        self.backend = backend
        self.model = model
        self.checker = ConflictChecker(backend, temporary_prefix=temporary_prefix)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def find_last_metadata(self, product: Optional[QualifiedPath] = None) -> Optional[DerivationMetadata]:
        """Newest derivation record in the history of product (default: current)."""
        branch = product or self.current_product().get_qualified_path()
        return find_last_metadata(self.backend.commit_history(branch))

    def status(self) -> DerivationReport:
        metadata = self.find_last_metadata()
        if metadata is None:
            return DerivationReport("status")
        return DerivationReport(
            "status",
            metadata=metadata,
            remaining=metadata.missing_paths(),
        )

    def begin(
            self,
            features: Iterable[Union[QualifiedPath, str]],
            optimize: bool = True,
    ) -> DerivationReport:
        """
        Start a derivation of features into the current product.

        Feature names are resolved relative to the feature root of the
        product's area.

        Raises:
            NamespaceError: Not on a product, or a feature has no branch.
            DerivationStateError: An unfinished derivation exists.
        """
        product = self.current_product()
        resolved = self.resolve_features(product, features)
        if not resolved:
            raise NamespaceError("No features given to derive")

        last = self.find_last_metadata(product.get_qualified_path())
        initial_commit = self.backend.head_commit()
        if last is None:
            metadata = DerivationMetadata.new_initial(resolved, initial_commit)
        elif last.state is DerivationState.FINISHED:
            metadata = DerivationMetadata.new_from_previously_finished(last, resolved, initial_commit)
        else:
            raise DerivationStateError(
                "Derivation incomplete, use 'tangl derive --continue' or "
                "'tangl derive --abort' first"
            )

        logger.info(f"Starting derivation {metadata.id} of {len(resolved)} feature(s)")
        self._checkpoint(metadata)
        return self._derivation_pass(metadata, optimize, "started")

    def continue_(self, optimize: bool = True) -> DerivationReport:
        """
        Resume an unfinished derivation after manual conflict resolution.

        Raises:
            DerivationStateError: No derivation, it already finished, or the
                conflicting merge has not been committed yet.
        """
        self.current_product()
        last = self.find_last_metadata()
        if last is None:
            raise DerivationStateError("Derivation not started, there is nothing to continue")
        if last.is_finished:
            raise DerivationStateError("Derivation finished, there is nothing to continue")
        if self.backend.merge_in_progress():
            raise DerivationStateError("A merge is still in progress, commit your resolution first")
        logger.info(f"Continuing derivation {last.id}")
        return self._derivation_pass(last, optimize, "continued")

    def abort(self) -> DerivationReport:
        """
        Drop an unfinished derivation and reset to its starting commit.

        Raises:
            DerivationStateError: No derivation, or it already finished.
        """
        self.current_product()
        last = self.find_last_metadata()
        if last is None:
            raise DerivationStateError("Derivation not started, there is nothing to abort")
        if last.is_finished:
            raise DerivationStateError("Derivation finished, there is nothing to abort")

        if not self.backend.abort_in_progress_merge():
            logger.debug("No merge in progress to abort")
        self.backend.reset_hard(last.initial_commit)
        logger.info(f"Reset to state before derivation ({last.initial_commit})")
        return DerivationReport(
            "aborted",
            metadata=last,
            remaining=last.missing_paths(),
            reset_to=last.initial_commit,
        )

    def compute_merge_order(
            self,
            missing: Sequence[QualifiedPath],
            optimize: bool = True,
    ) -> List[QualifiedPath]:
        """
        Order in which missing features are merged.

        With optimization the maximum clique of pairwise conflict-free
        features comes first, then the rest in their original order.

        Raises:
            ConflictCheckError: A pairwise check reported an ERROR.
        """
        paths = list(missing)
        if not optimize:
            logger.info("Merge order optimization is disabled")
            return paths
        if len(paths) <= 1:
            return paths

        statistics = ConflictStatistics(self.checker.check_all(paths))
        logger.info(
            f"Conflict check: {statistics.n_ok()} ok, {statistics.n_conflict()} conflicting"
        )
        graph = build_conflict_graph(paths, statistics)
        clique = [paths[i] for i in find_max_clique(graph)]
        return clique + [p for p in paths if p not in clique]

    # -------------------------------------------------------------------------
    # Namespace helpers
    # -------------------------------------------------------------------------

    def current_product(self) -> ProductPath:
        current = self.backend.current_branch()
        node_path = self.model.get_node_path(current)
        if node_path is None or node_path.get_node_type() is not NodeType.PRODUCT:
            raise NamespaceError(
                f"Current branch '{current}' is not a product. "
                f"Create one with 'tangl product' and check it out."
            )
        return ProductPath.of(node_path)

    def resolve_features(
            self,
            product: ProductPath,
            features: Iterable[Union[QualifiedPath, str]],
    ) -> List[QualifiedPath]:
        area = self.model.get_area(product.get_qualified_path())
        if area is None:
            raise NamespaceError(f"Product '{product.get_qualified_path()}' has no area")
        feature_root = AreaPath.of(area).get_path_to_feature_root()

        resolved: List[QualifiedPath] = []
        for feature in features:
            path = feature_root + QualifiedPath(feature)
            node_path = self.model.get_node_path(path)
            if node_path is None or node_path.get_node_type() is not NodeType.FEATURE:
                raise NamespaceError(f"'{feature}' is not a feature of this area")
            if not node_path.get_metadata().has_branch:
                raise NamespaceError(f"Feature '{path}' has no branch")
            resolved.append(path)
        return resolved

    # -------------------------------------------------------------------------
    # Derivation pass
    # -------------------------------------------------------------------------

    def _derivation_pass(
            self,
            metadata: DerivationMetadata,
            optimize: bool,
            action: str,
    ) -> DerivationReport:
        order = self.compute_merge_order(metadata.missing_paths(), optimize)

        merged: List[QualifiedPath] = []
        for path in order:
            result = self.backend.merge([path])
            if not result.succeeded:
                logger.info(f"Merging {path} conflicts, stopping")
                self.backend.abort_in_progress_merge()
                break
            metadata.mark_as_completed([path])
            merged.append(path)
            logger.info(f"Merged {path}")

        report = DerivationReport(action, metadata=metadata, merge_order=order, merged=merged)

        if not metadata.missing:
            metadata.as_finished()
            self._checkpoint(metadata)
            logger.info(f"Derivation {metadata.id} finished")
            return report

        metadata.as_in_progress()
        self._checkpoint(metadata)
        report.remaining = metadata.missing_paths()

        # Leave the first conflicting merge in the working tree for the user
        to_resolve = report.remaining[0]
        self.backend.merge([to_resolve])
        report.resolving = to_resolve
        logger.info(f"{len(report.remaining)} conflicting feature(s) remain, now merging {to_resolve}")
        return report

    def _checkpoint(self, metadata: DerivationMetadata) -> None:
        self.backend.empty_commit(make_derivation_commit_message(metadata))
        logger.debug(f"Checkpoint written for derivation {metadata.id} ({metadata.state.value})")
