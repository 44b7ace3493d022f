from __future__ import annotations

import math
import unittest
from datetime import timedelta

from inkfeed.data.models import InteractionType
from inkfeed.ranking.scoring import engagement_score, quality_score, time_decay, user_relevance_score
from tests.support import NOW, make_interaction, make_item, make_settings


class TimeDecayTestCase(unittest.TestCase):
    def test_fresh_content_has_no_penalty(self) -> None:
        self.assertEqual(time_decay(0), 1.0)
        self.assertEqual(time_decay(0.5), 1.0)
        self.assertEqual(time_decay(1), 1.0)
        self.assertEqual(time_decay(-3), 1.0)

    def test_strictly_decreasing_after_one_hour(self) -> None:
        ages = [1, 1.5, 2, 6, 24, 24 * 7, 24 * 365, 24 * 365 * 10]
        values = [time_decay(age) for age in ages]
        for older, newer in zip(values[1:], values[:-1]):
            self.assertLess(older, newer)
        self.assertGreater(values[-1], 0.0)

    def test_known_value(self) -> None:
        self.assertAlmostEqual(time_decay(24), 1.0 / (1.0 + math.log(24)))


class EngagementScoreTestCase(unittest.TestCase):
    def test_weighted_counters(self) -> None:
        item = make_item("n1", view_count=10, like_count=5, comment_count=2, time_spent_seconds=1000)
        self.assertAlmostEqual(engagement_score(item, make_settings()), (10 + 10 + 6 + 1) / 100)

    def test_shares_and_saves_do_not_count(self) -> None:
        item = make_item("n1", share_count=50, save_count=50)
        self.assertEqual(engagement_score(item, make_settings()), 0.0)

    def test_capped_at_one(self) -> None:
        item = make_item("n1", view_count=1000)
        self.assertEqual(engagement_score(item, make_settings()), 1.0)


class QualityScoreTestCase(unittest.TestCase):
    def test_partial_quality(self) -> None:
        item = make_item("n1", page_count=5, description_word_count=10, average_content_length=250)
        self.assertAlmostEqual(quality_score(item, make_settings()), 0.5)

    def test_each_part_is_capped(self) -> None:
        item = make_item("n1", page_count=100, description_word_count=400, average_content_length=9000)
        self.assertAlmostEqual(quality_score(item, make_settings()), 1.0)

    def test_empty_notebook(self) -> None:
        self.assertEqual(quality_score(make_item("n1"), make_settings()), 0.0)


class UserRelevanceTestCase(unittest.TestCase):
    def test_recent_interactions_weighted_by_recency(self) -> None:
        cfg = make_settings()
        just_now = make_interaction("u1", "n1", at=NOW)
        half_day = make_interaction("u1", "n1", at=NOW - timedelta(hours=12))
        self.assertAlmostEqual(user_relevance_score([just_now], NOW, cfg), 0.1)
        self.assertAlmostEqual(user_relevance_score([half_day], NOW, cfg), 0.05)
        self.assertAlmostEqual(user_relevance_score([just_now, half_day], NOW, cfg), 0.15)

    def test_outside_window_ignored(self) -> None:
        stale = make_interaction("u1", "n1", InteractionType.VIEW, at=NOW - timedelta(hours=25))
        self.assertEqual(user_relevance_score([stale], NOW, make_settings()), 0.0)
        self.assertEqual(user_relevance_score([], NOW, make_settings()), 0.0)

    def test_capped_at_one(self) -> None:
        burst = [make_interaction("u1", "n1", at=NOW) for _ in range(30)]
        self.assertEqual(user_relevance_score(burst, NOW, make_settings()), 1.0)


if __name__ == "__main__":
    unittest.main()
