"""Tests for :class:`chiefsnews.store.ArticleStore`."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from chiefsnews.models import Article
from chiefsnews.store import ArticleRow, ArticleStore

NOW = datetime(2025, 10, 8, 12, 0, tzinfo=timezone.utc)


def make_article(link: str, *, hours_ago: float = 0, source: str = "Arrowhead Pride") -> Article:
    return Article(
        title=f"Story {link}",
        link=link,
        description="",
        pub_date=NOW - timedelta(hours=hours_ago),
        source=source,
    )


def test_insert_same_link_twice_creates_one_record(store: ArticleStore) -> None:
    article = make_article("https://www.arrowheadpride.com/a")

    assert store.insert_if_absent(article) is True
    assert store.insert_if_absent(article.model_copy(update={"title": "Changed"})) is False

    assert store.count_total() == 1
    stored = store.list_articles()[0]
    assert stored.title == "Story https://www.arrowheadpride.com/a"
    assert stored.id is not None
    assert stored.created_at is not None


def test_list_articles_orders_by_pub_date_descending(store: ArticleStore) -> None:
    for link, hours in [("https://a.com/old", 30), ("https://a.com/new", 1), ("https://a.com/mid", 5)]:
        store.insert_if_absent(make_article(link, hours_ago=hours))

    links = [article.link for article in store.list_articles(limit=10, offset=0)]
    assert links == ["https://a.com/new", "https://a.com/mid", "https://a.com/old"]

    page = store.list_articles(limit=1, offset=1)
    assert [article.link for article in page] == ["https://a.com/mid"]


def test_pub_date_round_trips_as_aware_utc(store: ArticleStore) -> None:
    eastern = timezone(timedelta(hours=-4))
    store.insert_if_absent(
        make_article("https://a.com/tz").model_copy(
            update={"pub_date": datetime(2025, 10, 6, 14, 30, tzinfo=eastern)}
        )
    )

    stored = store.list_articles()[0]
    assert stored.pub_date == datetime(2025, 10, 6, 18, 30, tzinfo=timezone.utc)
    assert stored.pub_date.tzinfo is not None


def test_list_by_source_filters_exactly(store: ArticleStore) -> None:
    store.insert_if_absent(make_article("https://a.com/1", hours_ago=2, source="ESPN"))
    store.insert_if_absent(make_article("https://a.com/2", hours_ago=1, source="ESPN"))
    store.insert_if_absent(make_article("https://a.com/3", source="espn"))

    articles = store.list_by_source("ESPN", limit=10, offset=0)

    assert [article.link for article in articles] == ["https://a.com/2", "https://a.com/1"]
    assert store.list_by_source("ESPN", limit=1, offset=1)[0].link == "https://a.com/1"


def test_list_recent_returns_only_trailing_window(store: ArticleStore) -> None:
    offsets = [0.5, 3, 23, 25, 48, 100, 160]
    for index, hours in enumerate(offsets):
        store.insert_if_absent(make_article(f"https://a.com/{index}", hours_ago=hours))

    recent = store.list_recent(24, now=NOW)

    assert [article.link for article in recent] == [
        "https://a.com/0",
        "https://a.com/1",
        "https://a.com/2",
    ]
    assert all(NOW - article.pub_date <= timedelta(hours=24) for article in recent)
    assert len(store.list_recent(168, now=NOW)) == 7


def test_group_by_source_orders_by_count(store: ArticleStore) -> None:
    for index in range(3):
        store.insert_if_absent(make_article(f"https://a.com/espn/{index}", source="ESPN"))
    store.insert_if_absent(make_article("https://a.com/ap/1", source="Arrowhead Pride"))

    groups = store.group_by_source()

    assert [(group.source, group.count) for group in groups] == [("ESPN", 3), ("Arrowhead Pride", 1)]


def test_storage_faults_are_reported_not_raised(store: ArticleStore, caplog) -> None:
    ArticleRow.__table__.drop(store.engine)

    assert store.insert_if_absent(make_article("https://a.com/x")) is False
    assert store.list_articles() == []
    assert store.list_recent(24) == []
    assert store.count_total() == 0
    assert store.group_by_source() == []
    assert any("Error inserting article" in record.getMessage() for record in caplog.records)


def test_file_backed_store_persists_between_instances(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'news.db'}"
    first = ArticleStore(url)
    first.insert_if_absent(make_article("https://a.com/persisted"))
    first.close()

    second = ArticleStore(url)
    try:
        assert second.count_total() == 1
        assert second.insert_if_absent(make_article("https://a.com/persisted")) is False
    finally:
        second.close()
