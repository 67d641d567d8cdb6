from __future__ import annotations

"""
Derivation State Models.

A derivation merges a list of features into a product branch, possibly over
several sessions. Its progress is a DerivationMetadata record serialized into
the message of an empty commit on the product branch, behind a fixed sentinel
block. The newest parseable record in the branch history is the current state.
"""

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from tangl.domain.commit_models import Commit
from tangl.domain.errors import DerivationStateError, MetadataParseError
from tangl.domain.qualified_path import QualifiedPath

# -----------------------------------------------------------------------------
# PERSISTENCE CONSTANTS
# -----------------------------------------------------------------------------

DERIVATION_COMMENT = "# DO NOT EDIT OR REMOVE THIS COMMIT\nDERIVATION STATUS\n"

_REQUIRED_KEYS = ("id", "state", "initial_commit", "completed", "missing", "total")

# -----------------------------------------------------------------------------
# CORE DATA MODELS
# -----------------------------------------------------------------------------

class DerivationState(Enum):
    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class FeatureMetadata:
    """A feature taking part in a derivation, stored by its absolute path."""
    path: str

    @classmethod
    def from_path(cls, path: Union[QualifiedPath, str]) -> FeatureMetadata:
        return cls(str(QualifiedPath(path)))

    def get_qualified_path(self) -> QualifiedPath:
        return QualifiedPath(self.path)


@dataclass
class DerivationMetadata:
    """
    Persisted progress of one derivation.

    Invariants: completed and missing are disjoint and both are subsets of
    total. total only grows, and only when extending a finished record.

    Attributes:
        id: Random identifier of this derivation.
        state: Lifecycle state.
        initial_commit: Product tip before the derivation started (abort target).
        completed: Features merged so far.
        missing: Features still to merge, in requested order.
        total: Every feature ever derived into the product.
    """
    id: str
    state: DerivationState
    initial_commit: str
    completed: List[FeatureMetadata] = field(default_factory=list)
    missing: List[FeatureMetadata] = field(default_factory=list)
    total: List[FeatureMetadata] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def new_initial(
            cls,
            features: Iterable[Union[QualifiedPath, str]],
            initial_commit: str,
    ) -> DerivationMetadata:
        requested = _unique_features(features)
        return cls(
            id=str(uuid.uuid4()),
            state=DerivationState.STARTING,
            initial_commit=initial_commit,
            completed=[],
            missing=list(requested),
            total=list(requested),
        )

    @classmethod
    def new_from_previously_finished(
            cls,
            previous: DerivationMetadata,
            features: Iterable[Union[QualifiedPath, str]],
            initial_commit: str,
    ) -> DerivationMetadata:
        """
        Start a follow-up derivation on a product that was derived before.

        Raises:
            DerivationStateError: If previous is not finished.
        """
        if previous.state is not DerivationState.FINISHED:
            raise DerivationStateError(
                f"Cannot extend derivation {previous.id} in state {previous.state.value}"
            )
        requested = _unique_features(features)
        total = list(previous.total)
        for feature in requested:
            if feature not in total:
                total.append(feature)
        return cls(
            id=str(uuid.uuid4()),
            state=DerivationState.STARTING,
            initial_commit=initial_commit,
            completed=[],
            missing=list(requested),
            total=total,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def as_in_progress(self) -> None:
        self.state = DerivationState.IN_PROGRESS

    def as_finished(self) -> None:
        self.state = DerivationState.FINISHED

    @property
    def is_finished(self) -> bool:
        return self.state is DerivationState.FINISHED

    def mark_as_completed(self, paths: Iterable[Union[QualifiedPath, str]]) -> None:
        """Move the given features from missing to completed."""
        for path in paths:
            target = QualifiedPath(path)
            for feature in list(self.missing):
                if feature.get_qualified_path() == target:
                    self.missing.remove(feature)
                    self.completed.append(feature)

    def completed_paths(self) -> List[QualifiedPath]:
        return [f.get_qualified_path() for f in self.completed]

    def missing_paths(self) -> List[QualifiedPath]:
        return [f.get_qualified_path() for f in self.missing]

    def total_paths(self) -> List[QualifiedPath]:
        return [f.get_qualified_path() for f in self.total]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "initial_commit": self.initial_commit,
            "completed": [{"path": f.path} for f in self.completed],
            "missing": [{"path": f.path} for f in self.missing],
            "total": [{"path": f.path} for f in self.total],
        }

    @classmethod
    def from_dict(cls, data: Any) -> DerivationMetadata:
        """
        Rebuild a record from its JSON form.

        Raises:
            MetadataParseError: If keys are missing or values are malformed.
        """
        if not isinstance(data, dict):
            raise MetadataParseError("Derivation payload is not an object")
        missing_keys = [k for k in _REQUIRED_KEYS if k not in data]
        if missing_keys:
            raise MetadataParseError(f"Derivation payload lacks keys: {', '.join(missing_keys)}")
        try:
            return cls(
                id=str(data["id"]),
                state=DerivationState(data["state"]),
                initial_commit=str(data["initial_commit"]),
                completed=[FeatureMetadata(str(f["path"])) for f in data["completed"]],
                missing=[FeatureMetadata(str(f["path"])) for f in data["missing"]],
                total=[FeatureMetadata(str(f["path"])) for f in data["total"]],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataParseError(f"Malformed derivation payload: {e}") from e

# -----------------------------------------------------------------------------
# COMMIT MESSAGE CODEC
# -----------------------------------------------------------------------------

def make_derivation_commit_message(metadata: DerivationMetadata) -> str:
    """Sentinel block followed by the compact JSON record."""
    payload = json.dumps(metadata.to_dict(), separators=(",", ":"))
    return DERIVATION_COMMENT + payload


def is_derivation_commit(commit: Commit) -> bool:
    return DERIVATION_COMMENT.strip() in commit.message


def parse_derivation_commit_message(commit: Commit) -> Optional[DerivationMetadata]:
    """
    Extract the derivation record of a commit.

    Returns:
        Optional[DerivationMetadata]: None if the commit is not a checkpoint.

    Raises:
        MetadataParseError: If the sentinel is present but the payload is not
            a valid record.
    """
    if not is_derivation_commit(commit):
        return None
    _, _, payload = commit.message.partition(DERIVATION_COMMENT.strip())
    try:
        data = json.loads(payload.strip())
    except json.JSONDecodeError as e:
        raise MetadataParseError(f"Commit {commit.hash} has an unreadable derivation record: {e}") from e
    return DerivationMetadata.from_dict(data)


def find_last_metadata(commits: Iterable[Commit]) -> Optional[DerivationMetadata]:
    """Return the record of the newest checkpoint in a newest-first history."""
    for commit in commits:
        metadata = parse_derivation_commit_message(commit)
        if metadata is not None:
            return metadata
    return None

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _unique_features(features: Iterable[Union[QualifiedPath, str]]) -> List[FeatureMetadata]:
    unique: List[FeatureMetadata] = []
    for feature in features:
        metadata = FeatureMetadata.from_path(feature)
        if metadata not in unique:
            unique.append(metadata)
    return unique
