import pytest
from core.exceptions import (
    BubbleMapException,
    DuplicateVoteError,
    ForbiddenError,
    NotFoundError,
    SourceUnavailableError,
    StorageError,
    ValidationError
)


class TestCustomExceptions:
    """Test custom exception classes."""

    def test_validation_error(self):
        """Test ValidationError creation and properties."""
        error = ValidationError("lat", "abc", "Must be a number")
        assert error.status_code == 400
        assert error.error_code == "VALIDATION_ERROR"
        assert error.details == {"field": "lat", "value": "abc", "reason": "Must be a number"}
        assert "lat" in str(error)

    def test_invalid_vote_code(self):
        """Test ValidationError with a specific error code."""
        error = ValidationError("vote", 0, "Vote must be 1 or -1", error_code="INVALID_VOTE")
        assert error.status_code == 400
        assert error.error_code == "INVALID_VOTE"

    def test_not_found_error(self):
        """Test NotFoundError creation and properties."""
        error = NotFoundError("bubble", "b-1")
        assert str(error) == "Bubble not found: b-1"
        assert error.status_code == 404
        assert error.error_code == "NOT_FOUND"

    def test_forbidden_error(self):
        """Test self-vote rejection."""
        error = ForbiddenError("b-1")
        assert str(error) == "Cannot vote on your own bubble"
        assert error.status_code == 403
        assert error.error_code == "SELF_VOTE"

    def test_duplicate_vote_error(self):
        """Test duplicate vote rejection."""
        error = DuplicateVoteError("b-1", 1)
        assert str(error) == "Already voted"
        assert error.status_code == 400
        assert error.error_code == "DUPLICATE_VOTE"
        assert error.details["current_vote"] == 1

    def test_storage_error(self):
        """Test StorageError creation and properties."""
        error = StorageError("vote", "database is locked")
        assert error.status_code == 500
        assert error.error_code == "STORAGE_ERROR"
        assert "database is locked" in str(error)

    def test_source_unavailable_error(self):
        """Test SourceUnavailableError creation and properties."""
        error = SourceUnavailableError("eventbrite", "timeout")
        assert error.status_code == 503
        assert error.error_code == "SOURCE_UNAVAILABLE"

    def test_base_exception_defaults(self):
        """Test base exception defaults."""
        error = BubbleMapException("Something broke")
        assert error.status_code == 500
        assert error.error_code == "BUBBLE_MAP_ERROR"
        assert error.details == {}

    @pytest.mark.parametrize(
        "error_class",
        [ValidationError, NotFoundError, ForbiddenError, DuplicateVoteError, StorageError, SourceUnavailableError],
    )
    def test_inheritance(self, error_class):
        """All application errors share the base class."""
        assert issubclass(error_class, BubbleMapException)

