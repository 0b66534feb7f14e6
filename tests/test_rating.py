"""Tests for the Bayesian shrinkage RatingScore.

Tests cover:
- Prior from the rating scale and bound validation
- Score formula on the known 5x5 dataset
- Ranking order across few/many good/poor ratings
- Merging shard accumulators into a rating
- Score cache behaviour and display format
"""

import pytest

from statcounter.stats.accumulator import Accumulator
from statcounter.stats.rating import RatingScore, check_bounds
from statcounter.stats.reduce import rank


def _rating(values, lower=1.0, upper=5.0):
    rating = RatingScore(lower, upper)
    for v in values:
        rating.increment(v)
    return rating


class TestConstruction:
    def test_global_mean_is_midpoint(self):
        assert RatingScore(1, 5).global_mean == 3.0
        assert RatingScore(0, 10).global_mean == 5.0
        assert RatingScore(-2, 2).global_mean == 0.0

    def test_equal_bounds(self):
        assert RatingScore(4, 4).global_mean == 4.0

    def test_inverted_bounds_raise(self):
        with pytest.raises(ValueError, match="cannot exceed"):
            RatingScore(5, 1)

    def test_non_finite_bounds_raise(self):
        with pytest.raises(ValueError, match="finite"):
            RatingScore(float("nan"), 5)
        with pytest.raises(ValueError, match="finite"):
            RatingScore(1, float("inf"))

    def test_check_bounds_without_rating(self):
        check_bounds(1, 5)
        check_bounds(4, 4)
        with pytest.raises(ValueError, match="cannot exceed"):
            check_bounds(5, 1)
        with pytest.raises(ValueError, match="finite"):
            check_bounds(1, float("inf"))


class TestScore:
    def test_no_ratings_scores_prior(self):
        rating = RatingScore(1, 5)
        assert rating.count() == 0
        assert rating.mean_rating() == 3.0
        assert rating.bayesian_score() == 3.0

    def test_many_good_ratings(self):
        rating = _rating([5, 5, 5, 5, 5])
        assert rating.count() == 5
        assert rating.mean_rating() == 5.0
        # w = 5/6 -> (5/6)*5 + (1/6)*3
        assert rating.bayesian_score() == pytest.approx(14.0 / 3.0, abs=1e-12)

    def test_single_rating_is_halfway(self):
        """With m = 1 a single rating carries half the weight."""
        rating = _rating([1])
        assert rating.bayesian_score() == pytest.approx(2.0)

    def test_score_approaches_mean_with_more_data(self):
        few = _rating([5] * 2)
        many = _rating([5] * 200)
        assert few.bayesian_score() < many.bayesian_score() < 5.0
        assert many.bayesian_score() == pytest.approx(5.0, abs=0.01)


class TestRanking:
    @pytest.fixture
    def ratings(self):
        return {
            "noRatings": _rating([]),
            "manyGoodRatings": _rating([5, 5, 5, 5, 5]),
            "fewGoodRatings": _rating([5, 5]),
            "manyPoorRatings": _rating([1, 1, 1, 1, 1]),
            "fewPoorRatings": _rating([1, 1]),
        }

    def test_sorted_highest_first(self, ratings):
        ordered = sorted(ratings.values())
        assert ordered == [
            ratings["manyGoodRatings"],
            ratings["fewGoodRatings"],
            ratings["noRatings"],
            ratings["fewPoorRatings"],
            ratings["manyPoorRatings"],
        ]

    def test_rank_helper(self, ratings):
        ordered = rank(ratings.values())
        assert ordered[0] is ratings["manyGoodRatings"]
        assert ordered[-1] is ratings["manyPoorRatings"]
        assert ratings["noRatings"].bayesian_score() == 3.0

    def test_compare(self, ratings):
        good, poor = ratings["manyGoodRatings"], ratings["manyPoorRatings"]
        assert good.compare(poor) == -1
        assert poor.compare(good) == 1
        assert good.compare(_rating([5, 5, 5, 5, 5])) == 0

    def test_rich_comparisons(self, ratings):
        good, poor = ratings["manyGoodRatings"], ratings["manyPoorRatings"]
        assert good < poor
        assert poor > good
        tie = _rating([5, 5, 5, 5, 5])
        assert good <= tie
        assert good >= tie
        assert not good < tie

    def test_ties_keep_input_order(self):
        a, b = _rating([4, 4]), _rating([4, 4])
        assert rank([a, b]) == [a, b]
        assert rank([b, a])[0] is b


class TestMerge:
    def test_merge_accumulator(self):
        shard = Accumulator()
        for v in (5, 5, 5):
            shard.increment(v)
        rating = _rating([5, 5])
        rating.merge(shard)
        assert rating.count() == 5
        assert rating.bayesian_score() == pytest.approx(14.0 / 3.0)

    def test_merge_rating(self):
        rating = _rating([1, 1])
        rating.merge(_rating([1, 1, 1]))
        assert rating.count() == 5
        assert rating.mean_rating() == 1.0

    def test_merge_bytes(self):
        shard = Accumulator()
        shard.increment(2.0)
        rating = RatingScore(1, 5)
        rating.merge_bytes(shard.to_bytes())
        assert rating.count() == 1
        assert rating.mean_rating() == 2.0

    def test_counter_is_a_copy(self):
        rating = _rating([3, 4])
        counter = rating.counter
        counter.increment(100)
        assert rating.count() == 2


class TestCache:
    def test_score_updates_after_increment(self):
        rating = _rating([5])
        first = rating.bayesian_score()
        rating.increment(5)
        assert rating.bayesian_score() > first

    def test_from_bytes_clears_cache(self):
        """A decode with the same count but a different mean must rescore."""
        rating = _rating([5, 5])
        assert rating.bayesian_score() == pytest.approx(13.0 / 3.0)
        poor = Accumulator()
        poor.increment(1)
        poor.increment(1)
        rating.from_bytes(poor.to_bytes())
        assert rating.count() == 2
        assert rating.bayesian_score() == pytest.approx(5.0 / 3.0)


class TestDisplay:
    def test_str_many_good(self):
        assert str(_rating([5, 5, 5, 5, 5])) == "Rating: 5.00 (5), SortedBy 4.67"

    def test_str_no_ratings(self):
        assert str(RatingScore(1, 5)) == "Rating: 3.00 (0), SortedBy 3.00"
