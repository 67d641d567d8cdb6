from __future__ import annotations

"""
Unit tests for the derivation state models.

Verifies:
1. Record factories (initial and follow-up derivations).
2. Completion bookkeeping and state transitions.
3. The commit message codec: sentinel detection, round trip and
   rejection of corrupted payloads.
"""

import json

import pytest

from tangl.domain.commit_models import Commit
from tangl.domain.derivation_models import (
    DERIVATION_COMMENT,
    DerivationMetadata,
    DerivationState,
    find_last_metadata,
    is_derivation_commit,
    make_derivation_commit_message,
    parse_derivation_commit_message,
)
from tangl.domain.errors import DerivationStateError, MetadataParseError

A = "/main/feature/a"
B = "/main/feature/b"
C = "/main/feature/c"


def checkpoint(metadata: DerivationMetadata, commit_hash: str = "f" * 40) -> Commit:
    """Helper to wrap a record into a commit the way git returns it."""
    return Commit(commit_hash, make_derivation_commit_message(metadata).strip())

# -----------------------------------------------------------------------------
# Factories and transitions
# -----------------------------------------------------------------------------

def test_new_initial_deduplicates_in_order() -> None:
    meta = DerivationMetadata.new_initial([B, A, B], "abc")

    assert meta.state is DerivationState.STARTING
    assert meta.initial_commit == "abc"
    assert meta.missing_paths() == [B, A]
    assert meta.total_paths() == [B, A]
    assert meta.completed == []
    assert meta.id


def test_mark_as_completed_moves_features() -> None:
    meta = DerivationMetadata.new_initial([A, B, C], "abc")
    meta.mark_as_completed([A, C])

    assert meta.completed_paths() == [A, C]
    assert meta.missing_paths() == [B]
    assert meta.total_paths() == [A, B, C]


def test_state_transitions() -> None:
    meta = DerivationMetadata.new_initial([A], "abc")
    meta.as_in_progress()
    assert meta.state is DerivationState.IN_PROGRESS
    assert not meta.is_finished
    meta.as_finished()
    assert meta.is_finished


def test_follow_up_extends_total_without_duplicates() -> None:
    first = DerivationMetadata.new_initial([A, B], "abc")
    first.mark_as_completed([A, B])
    first.as_finished()

    follow_up = DerivationMetadata.new_from_previously_finished(first, [B, C], "def")

    assert follow_up.id != first.id
    assert follow_up.state is DerivationState.STARTING
    assert follow_up.initial_commit == "def"
    assert follow_up.missing_paths() == [B, C]
    assert follow_up.total_paths() == [A, B, C]
    assert follow_up.completed == []


def test_follow_up_requires_finished_record() -> None:
    unfinished = DerivationMetadata.new_initial([A], "abc")
    unfinished.as_in_progress()
    with pytest.raises(DerivationStateError):
        DerivationMetadata.new_from_previously_finished(unfinished, [B], "def")

# -----------------------------------------------------------------------------
# Commit message codec
# -----------------------------------------------------------------------------

def test_message_layout() -> None:
    meta = DerivationMetadata.new_initial([A], "abc")
    message = make_derivation_commit_message(meta)

    assert message.startswith(DERIVATION_COMMENT)
    payload = json.loads(message[len(DERIVATION_COMMENT):])
    assert payload["state"] == "starting"
    assert payload["missing"] == [{"path": A}]
    assert '"state":"starting"' in message


def test_round_trip_through_commit() -> None:
    meta = DerivationMetadata.new_initial([A, B], "abc")
    meta.mark_as_completed([A])
    meta.as_in_progress()

    parsed = parse_derivation_commit_message(checkpoint(meta))

    assert parsed == meta
    assert is_derivation_commit(checkpoint(meta))


def test_ordinary_commit_is_not_a_checkpoint() -> None:
    commit = Commit("a" * 40, "Fix typo in readme")
    assert parse_derivation_commit_message(commit) is None
    assert not is_derivation_commit(commit)


def test_corrupted_payload_raises() -> None:
    commit = Commit("a" * 40, DERIVATION_COMMENT + "{not json")
    with pytest.raises(MetadataParseError):
        parse_derivation_commit_message(commit)


@pytest.mark.parametrize(
    "payload",
    [
        {"id": "x"},
        {"id": "x", "state": "bogus", "initial_commit": "a", "completed": [], "missing": [], "total": []},
        {"id": "x", "state": "starting", "initial_commit": "a", "completed": [{}], "missing": [], "total": []},
        ["not", "an", "object"],
    ],
)
def test_invalid_record_raises(payload: object) -> None:
    commit = Commit("a" * 40, DERIVATION_COMMENT + json.dumps(payload))
    with pytest.raises(MetadataParseError):
        parse_derivation_commit_message(commit)


def test_find_last_metadata_returns_newest_checkpoint() -> None:
    older = DerivationMetadata.new_initial([A], "abc")
    newer = DerivationMetadata.new_initial([A], "abc")
    newer.mark_as_completed([A])
    newer.as_finished()

    history = [
        Commit("1" * 40, "work after derivation"),
        checkpoint(newer, "2" * 40),
        Commit("3" * 40, "Merge branch '_main/_feature/a'"),
        checkpoint(older, "4" * 40),
    ]

    assert find_last_metadata(history) == newer
    assert find_last_metadata([Commit("5" * 40, "plain")]) is None
