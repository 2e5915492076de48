"""Tests for intake deduplication."""
import pytest

from album_uploader.models import MediaFile, MediaKind, UploadCandidate, ValidationResult
from album_uploader.use_cases.deduplication import (
    CONTENT_HASH,
    NAME_AND_SIZE,
    FilterNewFilesUseCase,
    blake3_file,
    content_hash_key,
    filter_new,
    name_and_size_key,
    resolve_policy,
)


def _candidate(file: MediaFile) -> UploadCandidate:
    return UploadCandidate(file, MediaKind.from_content_type(file.content_type), ValidationResult.ok())


def test_filter_new_skips_held_candidates():
    held = [_candidate(MediaFile("a.jpg", 100, "image/jpeg"))]
    result = filter_new(held, [MediaFile("a.jpg", 100, "image/jpeg"), MediaFile("b.jpg", 100, "image/jpeg")])
    assert [f.name for f in result.accepted] == ["b.jpg"]
    assert [f.name for f in result.skipped] == ["a.jpg"]
    assert result.skipped_count == 1


def test_same_name_different_size_is_new():
    held = [_candidate(MediaFile("a.jpg", 100, "image/jpeg"))]
    result = filter_new(held, [MediaFile("a.jpg", 101, "image/jpeg")])
    assert len(result.accepted) == 1


def test_duplicates_within_batch_are_skipped():
    batch = [MediaFile("a.jpg", 1), MediaFile("b.jpg", 2), MediaFile("a.jpg", 1)]
    result = filter_new([], batch)
    assert [f.name for f in result.accepted] == ["a.jpg", "b.jpg"]
    assert [f.name for f in result.skipped] == ["a.jpg"]


def test_order_is_preserved():
    batch = [MediaFile(name, 1) for name in ("c.jpg", "a.jpg", "b.jpg")]
    assert [f.name for f in filter_new([], batch).accepted] == ["c.jpg", "a.jpg", "b.jpg"]


def test_resolve_policy():
    assert resolve_policy(NAME_AND_SIZE) is name_and_size_key
    assert resolve_policy(CONTENT_HASH) is content_hash_key
    with pytest.raises(ValueError, match="Unknown dedup policy"):
        resolve_policy("by_vibes")


def test_blake3_file_matches_content(tmp_path):
    first = tmp_path / "one.jpg"
    second = tmp_path / "two.jpg"
    first.write_bytes(b"same bytes")
    second.write_bytes(b"same bytes")
    assert blake3_file(first) == blake3_file(second)
    assert len(blake3_file(first)) == 64


def test_content_hash_key_falls_back_without_path():
    file = MediaFile("a.jpg", 5)
    assert content_hash_key(file) == name_and_size_key(file)


def test_content_hash_key_falls_back_on_unreadable_file(tmp_path):
    file = MediaFile("gone.jpg", 5, path=tmp_path / "gone.jpg")
    assert content_hash_key(file) == name_and_size_key(file)


class TestFilterNewFilesUseCase:
    def test_default_policy(self):
        use_case = FilterNewFilesUseCase()
        assert use_case.policy == NAME_AND_SIZE
        accepted, skipped = use_case.execute([], [MediaFile("a.jpg", 1), MediaFile("a.jpg", 1)])
        assert len(accepted) == 1
        assert len(skipped) == 1

    def test_content_hash_catches_renamed_copy(self, tmp_path):
        original = tmp_path / "a.jpg"
        renamed = tmp_path / "copy of a.jpg"
        original.write_bytes(b"pixels")
        renamed.write_bytes(b"pixels")
        held = [_candidate(MediaFile.from_path(original))]

        accepted, skipped = FilterNewFilesUseCase(CONTENT_HASH).execute(held, [MediaFile.from_path(renamed)])

        assert accepted == []
        assert [f.name for f in skipped] == ["copy of a.jpg"]

    def test_content_hash_keeps_identity_unique(self, tmp_path):
        # Different bytes, same name and size: still one candidate identity.
        (tmp_path / "x").mkdir()
        (tmp_path / "y").mkdir()
        first = tmp_path / "x" / "a.jpg"
        second = tmp_path / "y" / "a.jpg"
        first.write_bytes(b"aaaa")
        second.write_bytes(b"bbbb")

        accepted, skipped = FilterNewFilesUseCase(CONTENT_HASH).execute(
            [], [MediaFile.from_path(first), MediaFile.from_path(second)]
        )

        assert [f.path for f in accepted] == [first]
        assert [f.path for f in skipped] == [second]
