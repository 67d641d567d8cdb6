from __future__ import annotations

"""
Speculative Merge Conflict Checker.

Tells whether sets of branches merge together cleanly without touching real
history: every experiment runs on a disposable branch created from the
current tip (or a configured base branch) and is rolled back before the
next one starts. Backend failures are reported as ERROR statistics so one
broken pair never stops a batch.
"""

import logging
import uuid
from typing import Iterator, List, Optional, Sequence, Union

from tangl.domain.config import DEFAULT_TEMPORARY_BRANCH_PREFIX
from tangl.domain.conflict_models import ConflictStatistic
from tangl.domain.errors import TanglError
from tangl.domain.qualified_path import QualifiedPath
from tangl.infra.git import VersionControlBackend

logger = logging.getLogger(__name__)

PathArg = Union[QualifiedPath, str]


class ConflictChecker:
    """
    Runs merge experiments and classifies them as OK, CONFLICT or ERROR.

    Args:
        backend: Version-control backend to experiment on.
        base_branch: Branch the disposable branch starts from. None uses
            the checked-out branch.
        temporary_prefix: Prefix of disposable branch names.
    """

    def __init__(
            self,
            backend: VersionControlBackend,
            base_branch: Optional[PathArg] = None,
            temporary_prefix: str = DEFAULT_TEMPORARY_BRANCH_PREFIX,
    ) -> None:
        self.backend = backend
        self.base_branch = QualifiedPath(base_branch) if base_branch else None
        self.temporary_prefix = temporary_prefix

    # -------------------------------------------------------------------------
    # Batch API
    # -------------------------------------------------------------------------

    def check_all(self, paths: Sequence[PathArg]) -> Iterator[ConflictStatistic]:
        """Yield one statistic per unordered pair (i < j), lazily."""
        qualified: List[QualifiedPath] = [QualifiedPath(p) for p in paths]
        for i, left in enumerate(qualified):
            for right in qualified[i + 1:]:
                yield self.check_paths([left, right])

    def check_1_to_n(
            self,
            source: PathArg,
            targets: Sequence[PathArg],
    ) -> Iterator[ConflictStatistic]:
        """Yield one statistic per target, each merged together with source."""
        left = QualifiedPath(source)
        for target in targets:
            yield self.check_paths([left, QualifiedPath(target)])

    def check(self, paths: Sequence[PathArg]) -> Iterator[ConflictStatistic]:
        return self.check_all(paths)

    # -------------------------------------------------------------------------
    # Single experiment
    # -------------------------------------------------------------------------

    def check_paths(self, paths: Sequence[QualifiedPath]) -> ConflictStatistic:
        """
        Merge paths together on a disposable branch and classify the result.

        The original checkout is restored and the disposable branch deleted
        on every exit path, interrupts included.
        """
        try:
            original = self.backend.current_branch()
        except TanglError as e:
            logger.error(f"Cannot determine the current branch: {e}")
            return ConflictStatistic.error(e, *paths)

        temporary = self._temporary_branch()
        created = False
        failure: Optional[TanglError] = None
        cleanup_failure: Optional[TanglError] = None
        succeeded = False

        try:
            if self.base_branch is not None:
                self.backend.checkout(self.base_branch)
            self.backend.create_branch(temporary)
            created = True
            self.backend.checkout(temporary)

            result = self.backend.merge(list(paths))
            succeeded = result.succeeded
            if not succeeded and not self.backend.abort_in_progress_merge():
                # Octopus merges may stop without a merge state to abort
                self.backend.reset_hard("HEAD")
        except TanglError as e:
            failure = e
        finally:
            cleanup_failure = self._cleanup(original, temporary, created)

        if failure is not None:
            logger.warning(f"Conflict check of {_join(paths)} failed: {failure}")
            return ConflictStatistic.error(failure, *paths)
        if cleanup_failure is not None:
            return ConflictStatistic.error(cleanup_failure, *paths)

        statistic = (
            ConflictStatistic.ok(*paths) if succeeded
            else ConflictStatistic.conflict(*paths)
        )
        logger.debug(f"{statistic}")
        return statistic

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _temporary_branch(self) -> QualifiedPath:
        return QualifiedPath(f"{self.temporary_prefix}-{uuid.uuid4().hex[:8]}")

    def _cleanup(
            self,
            original: QualifiedPath,
            temporary: QualifiedPath,
            created: bool,
    ) -> Optional[TanglError]:
        """Restore the original checkout and drop the disposable branch."""
        first_error: Optional[TanglError] = None
        try:
            self.backend.checkout(original)
        except TanglError as e:
            logger.error(f"Cannot restore checkout of {original}: {e}")
            first_error = e
        if created:
            try:
                self.backend.delete_branch(temporary)
            except TanglError as e:
                logger.error(f"Cannot delete disposable branch {temporary}: {e}")
                first_error = first_error or e
        return first_error


def _join(paths: Sequence[QualifiedPath]) -> str:
    return " and ".join(str(p) for p in paths)
