"""Tests for external signal providers and the batched fetch."""

import asyncio
import json

import httpx
import pytest

from aso_combo_analyzer.models import ComboRanking, KeywordPopularity, TrendDirection
from aso_combo_analyzer.providers import (
    HttpPopularityProvider,
    HttpRankingProvider,
    PopularityProvider,
    ProviderError,
    RankingProvider,
    StaticPopularityProvider,
    StaticRankingProvider,
    fetch_signals,
    parse_popularity_entry,
    parse_ranking_entry,
    parse_timestamp,
)


def _ranking_service(requests: list):
    """Mock ranking endpoint that ranks every combo at position 7."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        results = [
            {"combo": combo, "position": 7, "totalResults": 1200, "trend": "up", "positionChange": 3}
            for combo in body["combos"]
        ]
        return httpx.Response(200, json={"results": results})
    return handler


class SlowRankingProvider(RankingProvider):
    async def fetch_rankings(self, app_id, combos, region, platform):
        await asyncio.sleep(5)
        return {}


class BrokenPopularityProvider(PopularityProvider):
    async def fetch_popularity(self, keywords, region):
        raise ProviderError("service unavailable")


class BuggyRankingProvider(RankingProvider):
    async def fetch_rankings(self, app_id, combos, region, platform):
        raise KeyError("results")


class StallingRankingProvider(RankingProvider):
    """Answers every batch except the one holding "c d", which hangs."""
    batch_size = 1

    async def fetch_rankings(self, app_id, combos, region, platform):
        if "c d" in combos:
            await asyncio.sleep(5)
        return {c: ComboRanking(combo=c, position=4) for c in combos}


class TestParsing:
    """Test payload entry parsing."""

    def test_ranking_entry(self):
        """Test a complete ranking entry is parsed and normalized."""
        ranking = parse_ranking_entry({
            "combo": "Meditation  Sleep",
            "position": "4",
            "totalResults": 800,
            "trend": "DOWN",
            "positionChange": -2,
            "checkedAt": "2026-01-01T10:00:00Z",
        })
        assert ranking.combo == "meditation sleep"
        assert ranking.position == 4
        assert ranking.trend is TrendDirection.DOWN
        assert ranking.checked_at.tzinfo is not None

    @pytest.mark.parametrize("entry", [
        None,
        "meditation sleep",
        {},
        {"combo": "  "},
        {"combo": "a b", "position": "first"},
        {"combo": "a b", "checkedAt": "yesterday"},
        {"combo": "a b", "position": True},
        {"combo": "a b", "position": float("inf")},
        {"combo": "a b", "position": 1e400},
        {"combo": "a b", "totalResults": float("nan")},
        {"combo": "a b", "positionChange": float("-inf")},
    ])
    def test_malformed_ranking_entries(self, entry):
        """Test malformed ranking entries are rejected, not raised."""
        assert parse_ranking_entry(entry) is None

    def test_popularity_entry(self):
        """Test a popularity entry with optional fields."""
        item = parse_popularity_entry({"keyword": "Sleep", "popularity_score": 61.5})
        assert item.keyword == "sleep"
        assert item.popularity_score == 61.5
        assert item.intent_score is None
        assert item.data_quality == "complete"

    @pytest.mark.parametrize("entry", [
        {"keyword": "sleep"},
        {"keyword": "sleep", "popularity_score": "lots"},
        {"popularity_score": 40},
        {"keyword": "sleep", "popularity_score": float("inf")},
        {"keyword": "sleep", "popularity_score": 40, "intent_score": float("nan")},
        [1, 2],
    ])
    def test_malformed_popularity_entries(self, entry):
        """Test popularity entries without a usable score are rejected."""
        assert parse_popularity_entry(entry) is None

    def test_parse_timestamp(self):
        """Test timestamps with and without a Z suffix."""
        assert parse_timestamp(None) is None
        assert parse_timestamp("2026-01-01T00:00:00Z").utcoffset().total_seconds() == 0
        assert parse_timestamp("2026-01-01T00:00:00").tzinfo is None


class TestHttpRankingProvider:
    """Test the HTTP ranking provider against a mock transport."""

    def test_batches(self):
        """Test combos are sent in chunks of batch_size."""
        requests: list = []
        provider = HttpRankingProvider(
            "https://signals.test",
            batch_size=2,
            transport=httpx.MockTransport(_ranking_service(requests)),
        )
        combos = ["a b", "c d", "e f", "g h", "i j"]
        rankings = asyncio.run(provider.fetch_rankings("app-1", combos, "gb", "ios"))
        assert [len(r["combos"]) for r in requests] == [2, 2, 1]
        assert requests[0]["appId"] == "app-1"
        assert requests[0]["country"] == "gb"
        assert set(rankings) == set(combos)
        assert rankings["a b"].position == 7

    def test_api_key_header(self):
        """Test the API key is sent as a bearer token."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"results": []})

        provider = HttpRankingProvider(
            "https://signals.test", api_key="secret", transport=httpx.MockTransport(handler)
        )
        asyncio.run(provider.fetch_rankings("app", ["a b"], "us", "ios"))
        assert seen["auth"] == "Bearer secret"

    def test_malformed_entries_skipped(self):
        """Test bad entries are dropped while good ones are kept."""
        def handler(request):
            return httpx.Response(200, json={"results": [
                {"combo": "a b", "position": 3},
                {"position": 9},
                "junk",
            ]})

        provider = HttpRankingProvider("https://signals.test", transport=httpx.MockTransport(handler))
        rankings = asyncio.run(provider.fetch_rankings("app", ["a b", "c d"], "us", "ios"))
        assert list(rankings) == ["a b"]

    def test_non_finite_numbers_skipped(self):
        """Test JSON Infinity and overflowing numbers drop the entry only."""
        def handler(request):
            return httpx.Response(
                200,
                content=(
                    b'{"results": [{"combo": "a b", "position": Infinity},'
                    b' {"combo": "c d", "totalResults": 1e400},'
                    b' {"combo": "e f", "position": 2}]}'
                ),
                headers={"Content-Type": "application/json"},
            )

        provider = HttpRankingProvider("https://signals.test", transport=httpx.MockTransport(handler))
        rankings = asyncio.run(provider.fetch_rankings("app", ["a b", "c d", "e f"], "us", "ios"))
        assert list(rankings) == ["e f"]

    def test_non_object_payload(self):
        """Test a JSON array response is a provider error."""
        provider = HttpRankingProvider(
            "https://signals.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2])),
        )
        with pytest.raises(ProviderError):
            asyncio.run(provider.fetch_rankings("app", ["a b"], "us", "ios"))

    def test_server_error(self):
        """Test an HTTP 500 becomes a ProviderError."""
        provider = HttpRankingProvider(
            "https://signals.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(ProviderError, match="500"):
            asyncio.run(provider.fetch_rankings("app", ["a b"], "us", "ios"))

    def test_partial_batch_failure(self):
        """Test rankings from successful batches survive a failed batch."""
        def handler(request):
            body = json.loads(request.content)
            if "c d" in body["combos"]:
                return httpx.Response(503)
            return httpx.Response(200, json={
                "results": [{"combo": c, "position": 12} for c in body["combos"]]
            })

        provider = HttpRankingProvider(
            "https://signals.test", batch_size=1, transport=httpx.MockTransport(handler)
        )
        rankings = asyncio.run(provider.fetch_rankings("app", ["a b", "c d", "e f"], "us", "ios"))
        assert set(rankings) == {"a b", "e f"}

    def test_invalid_batch_size(self):
        """Test batch_size must be positive."""
        with pytest.raises(ValueError):
            HttpRankingProvider("https://signals.test", batch_size=0)

    def test_empty_combos(self):
        """Test no request is made for an empty combo list."""
        def handler(request):
            raise AssertionError("unexpected request")

        provider = HttpRankingProvider("https://signals.test", transport=httpx.MockTransport(handler))
        assert asyncio.run(provider.fetch_rankings("app", [], "us", "ios")) == {}


class TestHttpPopularityProvider:
    """Test the HTTP popularity provider."""

    def test_fetch(self):
        """Test scores are parsed into a keyword map."""
        def handler(request):
            body = json.loads(request.content)
            assert body["region"] == "us"
            return httpx.Response(200, json={"scores": [
                {"keyword": k, "popularity_score": 42, "intent_score": 0.5}
                for k in body["keywords"]
            ]})

        provider = HttpPopularityProvider(
            "https://signals.test/", transport=httpx.MockTransport(handler)
        )
        popularity = asyncio.run(provider.fetch_popularity(["sleep", "timer"], "us"))
        assert set(popularity) == {"sleep", "timer"}
        assert popularity["sleep"].intent_score == 0.5

    def test_invalid_json(self):
        """Test a non-JSON body is a provider error."""
        provider = HttpPopularityProvider(
            "https://signals.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )
        with pytest.raises(ProviderError, match="Invalid JSON"):
            asyncio.run(provider.fetch_popularity(["sleep"], "us"))

    def test_scores_not_a_list(self):
        """Test a wrongly shaped scores field is a provider error."""
        provider = HttpPopularityProvider(
            "https://signals.test",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"scores": {"sleep": 10}})
            ),
        )
        with pytest.raises(ProviderError):
            asyncio.run(provider.fetch_popularity(["sleep"], "us"))


class TestStaticProviders:
    """Test in-memory providers."""

    def test_rankings_subset(self, sample_rankings):
        """Test only requested combos are returned."""
        provider = StaticRankingProvider(sample_rankings)
        result = asyncio.run(provider.fetch_rankings("app", ["Sleep Timer", "zen yoga"], "us", "ios"))
        assert list(result) == ["sleep timer"]

    def test_popularity_subset(self, sample_popularity):
        """Test only requested keywords are returned."""
        provider = StaticPopularityProvider(sample_popularity)
        result = asyncio.run(provider.fetch_popularity(["Meditation", "zen"], "us"))
        assert list(result) == ["meditation"]


class TestFetchSignals:
    """Test the concurrent, failure-tolerant fetch."""

    def test_both_providers(self, sample_rankings, sample_popularity):
        """Test signals from both providers are bundled."""
        bundle = asyncio.run(fetch_signals(
            ["meditation sleep", "sleep timer"],
            ["meditation", "sleep"],
            StaticRankingProvider(sample_rankings),
            StaticPopularityProvider(sample_popularity),
        ))
        assert set(bundle.rankings) == {"meditation sleep", "sleep timer"}
        assert set(bundle.popularity) == {"meditation", "sleep"}
        assert not bundle.degraded

    def test_no_providers(self):
        """Test no providers yields an empty, healthy bundle."""
        bundle = asyncio.run(fetch_signals(["a b"], ["a", "b"]))
        assert bundle.rankings == {}
        assert bundle.popularity == {}
        assert not bundle.degraded

    def test_timeout_falls_back(self, sample_popularity):
        """Test a slow provider times out without aborting the run."""
        bundle = asyncio.run(fetch_signals(
            ["meditation sleep"],
            ["meditation"],
            SlowRankingProvider(),
            StaticPopularityProvider(sample_popularity),
            timeout=0.05,
        ))
        assert bundle.rankings == {}
        assert "timed out" in bundle.ranking_error
        assert set(bundle.popularity) == {"meditation"}
        assert bundle.degraded

    def test_failure_falls_back(self, sample_rankings):
        """Test a failing provider is reported and its side left empty."""
        bundle = asyncio.run(fetch_signals(
            ["sleep timer"],
            ["sleep"],
            StaticRankingProvider(sample_rankings),
            BrokenPopularityProvider(),
        ))
        assert bundle.popularity == {}
        assert "service unavailable" in bundle.popularity_error
        assert list(bundle.rankings) == ["sleep timer"]

    def test_http_failure_falls_back(self):
        """Test an unreachable HTTP service degrades instead of raising."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = HttpRankingProvider("https://signals.test", transport=httpx.MockTransport(handler))
        bundle = asyncio.run(fetch_signals(["a b"], ["a"], ranking_provider=provider))
        assert bundle.rankings == {}
        assert bundle.ranking_error is not None

    def test_unexpected_exception_falls_back(self, sample_popularity):
        """Test a provider raising an arbitrary exception still degrades."""
        bundle = asyncio.run(fetch_signals(
            ["meditation sleep"],
            ["meditation"],
            BuggyRankingProvider(),
            StaticPopularityProvider(sample_popularity),
        ))
        assert bundle.rankings == {}
        assert "KeyError" in bundle.ranking_error
        assert set(bundle.popularity) == {"meditation"}

    def test_timeout_keeps_completed_batches(self):
        """Test batches finished before the deadline survive a later stall."""
        bundle = asyncio.run(fetch_signals(
            ["a b", "c d"],
            [],
            StallingRankingProvider(),
            timeout=0.2,
        ))
        assert list(bundle.rankings) == ["a b"]
        assert "timed out after 0.2s" in bundle.ranking_error

    def test_http_timeout_keeps_completed_batches(self):
        """Test the HTTP provider's earlier batches survive a stalled batch."""
        async def handler(request):
            body = json.loads(request.content)
            if "c d" in body["combos"]:
                await asyncio.sleep(5)
            return httpx.Response(200, json={
                "results": [{"combo": c, "position": 9} for c in body["combos"]]
            })

        provider = HttpRankingProvider(
            "https://signals.test", batch_size=1, transport=httpx.MockTransport(handler)
        )
        bundle = asyncio.run(fetch_signals(["a b", "c d"], [], provider, timeout=0.3))
        assert set(bundle.rankings) == {"a b"}
        assert bundle.rankings["a b"].position == 9
        assert bundle.degraded

    def test_custom_ranking_objects(self):
        """Test static providers accept hand-built signals."""
        provider = StaticRankingProvider([ComboRanking(combo="A B", position=2)])
        popularity = StaticPopularityProvider([KeywordPopularity(keyword="A", popularity_score=10)])
        bundle = asyncio.run(fetch_signals(["a b"], ["a"], provider, popularity))
        assert bundle.rankings["a b"].position == 2
        assert bundle.popularity["a"].popularity_score == 10
