from bizpulse.logic.benchmarks import (
    category_benchmark,
    competitor_insights,
    market_position,
    rank_businesses,
    ratio_label,
)
from bizpulse.models import Business, BusinessStats


def _business(id, user="me", category="Cafe", town="Knysna", status="Active"):
    return Business(id=id, user_id=user, name=f"B{id}", category=category, town=town, status=status)


def _stats(id, views, reviews=0, rating=None, category="Cafe", town="Knysna"):
    engagement = reviews * 100 / views if views else 0.0
    return BusinessStats(
        business_id=id,
        name=f"B{id}",
        category=category,
        town=town,
        total_views=views,
        total_reviews=reviews,
        average_rating=rating,
        engagement_score=engagement,
    )


def test_benchmark_withheld_for_small_category():
    mine = [_business(1)]
    category = [_business(1), _business(2, user="other")]
    stats = {1: _stats(1, 10, 1, 4.0), 2: _stats(2, 20, 2, 4.5)}
    assert category_benchmark("Cafe", mine, category, stats) is None


def test_benchmark_withheld_when_user_not_in_category():
    category = [_business(i, user="other") for i in range(2, 8)]
    stats = {b.id: _stats(b.id, 10) for b in category}
    assert category_benchmark("Cafe", [_business(1, category="Bakery")], category, stats) is None


def test_benchmark_against_competitors():
    mine = [_business(1)]
    others = [_business(i, user="other") for i in range(2, 6)]
    stats = {1: _stats(1, 2, 1, 3.0)}
    stats.update({b.id: _stats(b.id, 10, 2, 4.5) for b in others})

    benchmark = category_benchmark("Cafe", mine, [*mine, *others], stats)

    assert benchmark.total_business_count == 5
    assert benchmark.average_views == 10
    assert benchmark.user_average_views == 2
    assert benchmark.performance_vs_average == "below"
    assert benchmark.metrics[0].performance == "poor"
    assert benchmark.metrics[0].percentile_rank == 20.0
    assert "Your businesses are getting fewer views than competitors in this category" in benchmark.insights
    assert "Consider improving service quality to match competitor ratings" in benchmark.insights


def test_ratio_labels():
    assert ratio_label(15, 10) == "excellent"
    assert ratio_label(12, 10) == "good"
    assert ratio_label(9, 10) == "average"
    assert ratio_label(6, 10) == "below_average"
    assert ratio_label(1, 10) == "poor"
    assert ratio_label(0, 0) == "average"


def test_market_positions():
    assert market_position(4.8, 100, 4.0, 80) == "leader"
    assert market_position(3.4, 100, 4.0, 80) == "challenger"
    assert market_position(4.1, 30, 4.0, 80) == "niche"
    assert market_position(4.1, 90, 4.0, 80) == "competitive"


def test_competitor_insights_match_category_and_town():
    mine = [_business(1), _business(9, category="Bakery")]
    candidates = [
        _business(1),
        _business(2, user="other"),
        _business(3, user="other"),
        _business(4, user="other", town="knysna"),
        _business(9, category="Bakery"),
    ]
    stats = {
        1: _stats(1, 5, 1, 2.0),
        2: _stats(2, 10, 3, 4.5),
        3: _stats(3, 10, 3, 4.5),
        4: _stats(4, 100, 9, 5.0),
        9: _stats(9, 1, 0, None),
    }

    insights = competitor_insights(mine, candidates, stats)

    assert len(insights) == 1
    insight = insights[0]
    assert insight.business_id == 1
    assert insight.competitor_count == 2
    assert insight.market_position == "challenger"
    assert insight.your_rank == 3
    assert insight.market_share_percentage == 20.0
    assert "Focus on increasing visibility to match competitor view counts" in insight.recommendations
    assert "Work on improving customer satisfaction to match competitor ratings" in insight.recommendations


def test_rank_businesses():
    leaderboard = rank_businesses([_stats(1, 100, 10, 4.5), _stats(2, 10, 0, 3.0)])
    assert leaderboard[0].business_name == "B1"
    assert leaderboard[0].rank == 1
    assert rank_businesses([]) == []
