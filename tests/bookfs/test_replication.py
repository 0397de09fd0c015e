import pytest

from src.bookfs.errors import ReplicationCancelled
from src.bookfs.models import BookMetadata, ProgressMetadata
from src.bookfs.replication import (
    CancelToken,
    SaveBehavior,
    format_replication_error,
    is_not_newer,
    is_up_to_date,
    should_skip_write,
)


def book(modified, opened=0, characters=100):
    return BookMetadata(characters=characters, last_book_modified=modified, last_book_open=opened)


def progress(modified, value=0.5):
    return ProgressMetadata(last_bookmark_modified=modified, progress=value)


class TestIsNotNewer:

    def test_book_same_timestamps(self):
        assert is_not_newer(book(10, 5), book(10, 5))

    def test_book_newer_candidate(self):
        assert not is_not_newer(book(11, 5), book(10, 5))

    def test_book_newer_open_time(self):
        assert not is_not_newer(book(10, 6), book(10, 5))

    def test_book_zero_modified_is_never_fresh(self):
        assert not is_not_newer(book(0), book(10))
        assert not is_not_newer(book(10), book(0))

    def test_book_zero_open_times_compare(self):
        assert is_not_newer(book(10, 0), book(12, 0))

    def test_progress(self):
        assert is_not_newer(progress(5), progress(5))
        assert is_not_newer(progress(5), progress(6))
        assert not is_not_newer(progress(7), progress(6))
        assert not is_not_newer(progress(0), progress(6))

    def test_progress_value_is_ignored(self):
        assert is_not_newer(progress(5, 0.9), progress(5, 0.1))

    def test_mixed_kinds_raise(self):
        with pytest.raises(TypeError):
            is_not_newer(book(1), progress(1))


class TestPolicy:

    @pytest.mark.parametrize("candidate,existing", [
        (book(1, 1), book(1, 1)),
        (book(1), book(9)),
        (progress(3), progress(3)),
        (book(5), None),
    ])
    def test_overwrite_never_skips(self, candidate, existing):
        assert not should_skip_write(candidate, existing, SaveBehavior.OVERWRITE)
        assert not is_up_to_date(candidate, existing, SaveBehavior.OVERWRITE)

    def test_missing_artifact_is_never_up_to_date(self):
        assert not should_skip_write(book(5), None, SaveBehavior.NEW_ONLY)
        assert not is_up_to_date(progress(5), None, SaveBehavior.NEW_ONLY)

    @pytest.mark.parametrize("candidate,existing", [
        (book(10, 1), book(10, 1)),
        (book(10, 1), book(9, 1)),
        (book(10, 2), book(11, 1)),
        (book(0), book(5)),
        (progress(4), progress(5)),
        (progress(6), progress(5)),
    ])
    def test_skip_matches_up_to_date(self, candidate, existing):
        assert should_skip_write(candidate, existing, SaveBehavior.NEW_ONLY) == \
            is_up_to_date(candidate, existing, SaveBehavior.NEW_ONLY)

    def test_new_only_skips_older_book(self):
        assert should_skip_write(book(5, 5), book(10, 10), SaveBehavior.NEW_ONLY)

    def test_behavior_values(self):
        assert SaveBehavior("newOnly") is SaveBehavior.NEW_ONLY
        assert SaveBehavior("overwrite") is SaveBehavior.OVERWRITE


class TestCancelToken:

    def test_cancel(self):
        token = CancelToken()
        token.raise_if_cancelled()

        token.cancel("user")

        assert token.cancelled
        assert token.reason == "user"
        with pytest.raises(ReplicationCancelled):
            token.raise_if_cancelled()


def test_format_replication_error():
    assert format_replication_error(ValueError("boom"), "Error for Dune: ") == "Error for Dune: boom"
