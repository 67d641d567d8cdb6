from __future__ import annotations

"""
Namespace Services.

Operations on the area/feature/product namespace of the checked-out branch:
creating and deleting features and products, tags, checkout by relative
path, spreading commits to descendants, untying product commits back into
the feature they belong to, and whole-area conflict checks.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from tangl.core.conflict_checker import ConflictChecker
from tangl.core.filters import ChainingFilter, HasBranchFilter, NodePathFilter
from tangl.core.tree_renderer import render_tree
from tangl.domain.commit_models import Commit
from tangl.domain.config import DEFAULT_TEMPORARY_BRANCH_PREFIX
from tangl.domain.conflict_models import ConflictStatistics
from tangl.domain.derivation_models import parse_derivation_commit_message
from tangl.domain.errors import NamespaceError
from tangl.domain.node_path import AreaPath, NodePath, ProductPath
from tangl.domain.qualified_path import QualifiedPath
from tangl.domain.tree_models import NodeType, TreeDataModel
from tangl.infra.git import VersionControlBackend

logger = logging.getLogger(__name__)

PathArg = Union[QualifiedPath, str]

# -----------------------------------------------------------------------------
# RESULT MODELS
# -----------------------------------------------------------------------------

@dataclass
class SpreadReport:
    """
    Outcome of spreading a branch to its descendants.

    Attributes:
        source: Branch whose commits were spread.
        merged: Descendants that merged cleanly.
        failed: Descendants whose merge conflicted and was aborted.
    """
    source: QualifiedPath
    merged: List[QualifiedPath] = field(default_factory=list)
    failed: List[QualifiedPath] = field(default_factory=list)


@dataclass(frozen=True)
class UntieResult:
    commit: str
    feature: QualifiedPath
    succeeded: bool


class _NotTagFilter(NodePathFilter):
    def apply(self, node_path: NodePath) -> Optional[NodePath]:
        if node_path.get_node_type() is NodeType.TAG:
            return None
        return node_path

# -----------------------------------------------------------------------------
# SERVICE
# -----------------------------------------------------------------------------

class NamespaceService:
    """
    Namespace operations relative to the checked-out branch.

    The tree model is updated in place when branches are created so one
    service instance stays consistent across several calls.
    """

    def __init__(
            self,
            backend: VersionControlBackend,
            model: TreeDataModel,
            temporary_prefix: str = DEFAULT_TEMPORARY_BRANCH_PREFIX,
    ) -> None:
        self.backend = backend
        self.model = model
        self.temporary_prefix = temporary_prefix

    # -------------------------------------------------------------------------
    # Location
    # -------------------------------------------------------------------------

    def current_path(self) -> QualifiedPath:
        return self.backend.current_branch()

    def current_node_path(self) -> NodePath:
        current = self.current_path()
        node_path = self.model.get_node_path(current)
        if node_path is None:
            raise NamespaceError(f"Current branch '{current}' is not part of the namespace")
        return node_path

    def current_area(self) -> AreaPath:
        current = self.current_path()
        area = self.model.get_area(current)
        if area is None:
            raise NamespaceError(f"Current branch '{current}' is not inside an area")
        return area

    # -------------------------------------------------------------------------
    # Features and products
    # -------------------------------------------------------------------------

    def create_feature(self, name: PathArg) -> QualifiedPath:
        """
        Create a feature branch at the current tip.

        From an area the feature goes below its feature root; from a
        feature it becomes a child of that feature.

        Raises:
            NamespaceError: The current branch is neither an area nor a feature.
        """
        node_path = self.current_node_path()
        node_type = node_path.get_node_type()
        if node_type is NodeType.AREA:
            base = AreaPath.of(node_path).get_path_to_feature_root()
        elif node_type is NodeType.FEATURE:
            base = node_path.get_qualified_path()
        else:
            raise NamespaceError(
                "Cannot create feature: current branch is not a feature or area branch"
            )
        return self._create_branch(base + QualifiedPath(name))

    def delete_feature(self, name: PathArg) -> QualifiedPath:
        target = self.current_area().get_path_to_feature_root() + QualifiedPath(name)
        self.backend.delete_branch(target)
        logger.info(f"Deleted feature {target}")
        return target

    def create_product(self, name: PathArg) -> QualifiedPath:
        """
        Create a product branch at the current tip.

        Raises:
            NamespaceError: The current branch is neither an area nor a product.
        """
        node_path = self.current_node_path()
        node_type = node_path.get_node_type()
        if node_type is NodeType.AREA:
            base = AreaPath.of(node_path).get_path_to_product_root()
        elif node_type is NodeType.PRODUCT:
            base = node_path.get_qualified_path()
        else:
            raise NamespaceError(
                "Cannot create product: current branch is not a product or area branch"
            )
        return self._create_branch(base + QualifiedPath(name))

    def delete_product(self, name: PathArg) -> QualifiedPath:
        target = self.current_area().get_path_to_product_root() + QualifiedPath(name)
        self.backend.delete_branch(target)
        logger.info(f"Deleted product {target}")
        return target

    def _create_branch(self, target: QualifiedPath) -> QualifiedPath:
        # Validate the position before git sees the name
        self.model.validate_qualified_path(target)
        self.backend.create_branch(target)
        self.model.insert_qualified_path(target)
        logger.info(f"Created branch {target}")
        return target

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def render_tree(self, show_tags: bool = False) -> str:
        return render_tree(self.current_node_path(), show_tags)

    def feature_tree(self, show_tags: bool = False) -> Optional[str]:
        root = self.current_area().to_feature_root()
        return render_tree(root, show_tags) if root is not None else None

    def product_tree(self) -> Optional[str]:
        root = self.current_area().to_product_root()
        return render_tree(root) if root is not None else None

    # -------------------------------------------------------------------------
    # Checkout and tags
    # -------------------------------------------------------------------------

    def checkout(self, target: PathArg) -> QualifiedPath:
        """
        Check out current + target.

        Raises:
            NamespaceError: The resolved path carries no branch.
        """
        full_target = self.current_path() + QualifiedPath(target)
        if not self.model.has_branch(full_target):
            raise NamespaceError(f"Cannot checkout branch {full_target}: does not exist")
        self.backend.checkout(full_target)
        logger.info(f"Checked out {full_target}")
        return full_target

    def create_tag(self, tag: PathArg) -> QualifiedPath:
        tagged = self.current_path() + QualifiedPath(tag)
        self.model.validate_qualified_path(tagged, is_tag=True)
        self.backend.create_tag(tagged)
        self.model.insert_qualified_path(tagged, is_tag=True)
        logger.info(f"Created tag {tagged}")
        return tagged

    def delete_tag(self, tag: PathArg) -> QualifiedPath:
        tagged = self.current_path() + QualifiedPath(tag)
        self.backend.delete_tag(tagged)
        logger.info(f"Deleted tag {tagged}")
        return tagged

    def list_tags(self) -> List[QualifiedPath]:
        return self.current_node_path().get_tags()

    # -------------------------------------------------------------------------
    # Spread
    # -------------------------------------------------------------------------

    def spread(self) -> SpreadReport:
        """
        Merge the current branch into every descendant that has a branch.

        Conflicting merges are aborted and reported. The original branch is
        checked out again afterwards.
        """
        node_path = self.current_node_path()
        source = node_path.get_qualified_path()
        report = SpreadReport(source)
        descendants = ChainingFilter([_NotTagFilter(), HasBranchFilter(True)])

        try:
            for child in descendants.transform(node_path.iter_children_req()):
                target = child.get_qualified_path()
                logger.info(f"Spreading to {target}")
                self.backend.checkout(target)
                result = self.backend.merge([source])
                if result.succeeded:
                    report.merged.append(target)
                else:
                    self.backend.abort_in_progress_merge()
                    report.failed.append(target)
                    logger.warning(f"Spreading to {target} conflicts, merge aborted")
        finally:
            self.backend.checkout(source)
        return report

    # -------------------------------------------------------------------------
    # Untie
    # -------------------------------------------------------------------------

    def untie(self, commit: Optional[str] = None, feature: Optional[PathArg] = None) -> UntieResult:
        """
        Cherry-pick a product commit back onto the feature it belongs to.

        Only commits made after the first finished derivation qualify. The
        target feature is the single derived feature whose files cover
        every file the commit changes, unless feature is given.

        Raises:
            NamespaceError: Not on a product, the commit does not qualify, or
                no unique target feature exists.
        """
        node_path = self.current_node_path()
        if node_path.get_node_type() is not NodeType.PRODUCT:
            raise NamespaceError("Not on product branch")
        product = ProductPath.of(node_path).get_qualified_path()

        history = self.backend.commit_history(product)
        if not history:
            raise NamespaceError("No commits on product")
        target_hash = _resolve_commit(history, commit) if commit else history[0].hash

        derivation_found = False
        valid = False
        derived: List[QualifiedPath] = []
        for entry in reversed(history):
            metadata = parse_derivation_commit_message(entry)
            if metadata is not None:
                if entry.hash == target_hash:
                    raise NamespaceError("Derivation commit cannot be untied")
                if metadata.is_finished:
                    derivation_found = True
                    for path in metadata.completed_paths():
                        if path not in derived:
                            derived.append(path)
            elif derivation_found and entry.hash == target_hash:
                valid = True
                break
        if not valid:
            raise NamespaceError("Commit not found after initial derivation")

        if feature is not None:
            target_feature = self.current_area().get_path_to_feature_root() + QualifiedPath(feature)
        else:
            target_feature = self._untie_target(target_hash, derived)

        try:
            self.backend.checkout(target_feature)
            result = self.backend.cherry_pick(target_hash)
            if not result.succeeded:
                self.backend.abort_cherry_pick()
                logger.warning(f"Unable to untie commit {target_hash}")
            else:
                logger.info(f"Untied commit {target_hash} to {target_feature}")
        finally:
            self.backend.checkout(product)
        return UntieResult(target_hash, target_feature, result.succeeded)

    def _untie_target(self, commit: str, candidates: List[QualifiedPath]) -> QualifiedPath:
        changed = self.backend.files_changed_by(commit)
        matching = []
        for candidate in candidates:
            managed = set(self.backend.files_managed_by(candidate))
            if all(path in managed for path in changed):
                matching.append(candidate)
        if not matching:
            raise NamespaceError(
                "There are no features matching all changed files. "
                "Please choose one manually with the --feature parameter."
            )
        if len(matching) > 1:
            raise NamespaceError(
                "There are multiple potential untie targets. "
                "Please choose one manually with the --feature parameter."
            )
        return matching[0]

    # -------------------------------------------------------------------------
    # Conflict check
    # -------------------------------------------------------------------------

    def check_features(self, base_branch: Optional[PathArg] = None) -> ConflictStatistics:
        """Pairwise conflict check over every feature branch of the current area."""
        feature_root = self.current_area().to_feature_root()
        if feature_root is None:
            return ConflictStatistics()
        features = [
            p.get_qualified_path()
            for p in HasBranchFilter(True).transform(feature_root.iter_children_req())
        ]
        checker = ConflictChecker(self.backend, base_branch, self.temporary_prefix)
        return ConflictStatistics(checker.check(features))


def _resolve_commit(history: List[Commit], requested: str) -> str:
    """
    Expand a possibly abbreviated hash against the product history.

    Raises:
        NamespaceError: No commit, or more than one commit, starts with it.
    """
    matches = [entry.hash for entry in history if entry.hash.startswith(requested)]
    if not matches:
        raise NamespaceError(f"Commit {requested} not found on product")
    if len(matches) > 1:
        raise NamespaceError(f"Commit {requested} is ambiguous, {len(matches)} commits match")
    return matches[0]
