import pytest

from repoflow.webhook.mask import matches_mask, matches_pattern


@pytest.mark.parametrize(
    ("pattern", "event_type", "action", "expected"),
    [
        ("*", "branch", "created", True),
        ("repository.*", "repository", "created", True),
        ("repository.*", "repository", "deleted", True),
        ("repository.*", "repositoryx", "created", False),
        ("repository.*", "branch", "created", False),
        ("repository.created", "repository", "created", True),
        ("repository.created", "repository", "deleted", False),
        ("*.created", "repository", "created", False),
        ("repo*", "repository", "created", False),
    ],
)
def test_matches_pattern(pattern, event_type, action, expected):
    assert matches_pattern(pattern, event_type, action) is expected


class TestMatchesMask:
    @pytest.mark.parametrize("mask", [None, []])
    def test_empty_mask_accepts_everything(self, mask):
        assert matches_mask(mask, "anything", "at_all")

    def test_any_pattern_may_match(self):
        mask = ["branch.deleted", "repository.*"]
        assert matches_mask(mask, "repository", "created")
        assert matches_mask(mask, "branch", "deleted")
        assert not matches_mask(mask, "branch", "created")
