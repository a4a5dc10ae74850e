"""
External signal providers.

The engine consumes two collaborators:
- RankingProvider: per-combo ranking position, competition and trend
- PopularityProvider: per-keyword popularity and intent

Both are fetched once per analysis run, in batches, concurrently. Provider
failures never abort an analysis: fetch_signals() logs a warning and returns
an empty map for the failed side (ranking batches that completed are kept),
and scoring falls back to neutral defaults.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

import httpx

from .models import ComboRanking, KeywordPopularity

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 100


class ProviderError(Exception):
    """Raised when a signal provider cannot deliver usable data."""
    pass


class RankingProvider(ABC):
    """Source of per-combo ranking signals."""

    @abstractmethod
    async def fetch_rankings(
        self,
        app_id: str,
        combos: list[str],
        region: str,
        platform: str,
    ) -> dict[str, ComboRanking]:
        """
        Fetch ranking signals for a batch of combos.

        Returns:
            Map of normalized combo text to ranking. Combos without an entry
            are unknown, not errors.
        """


class PopularityProvider(ABC):
    """Source of per-keyword popularity signals."""

    @abstractmethod
    async def fetch_popularity(
        self,
        keywords: list[str],
        region: str,
    ) -> dict[str, KeywordPopularity]:
        """
        Fetch popularity signals for a batch of keywords.

        Returns:
            Map of lowercase keyword to popularity.
        """


@dataclass
class SignalBundle:
    """Signals gathered for one analysis run."""
    rankings: dict[str, ComboRanking] = field(default_factory=dict)
    popularity: dict[str, KeywordPopularity] = field(default_factory=dict)
    ranking_error: Optional[str] = None
    popularity_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.ranking_error is not None or self.popularity_error is not None


# =============================================================================
# Payload parsing
# =============================================================================

def _finite(value: Any) -> float:
    # JSON "Infinity", "NaN" and 1e400 all parse to non-finite floats.
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not a finite number")
    return number


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return int(_finite(value))


def _optional_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return _finite(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing "Z"."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_ranking_entry(entry: Any) -> Optional[ComboRanking]:
    """
    Parse one ranking result entry.

    Returns:
        ComboRanking, or None when the entry is malformed.
    """
    if not isinstance(entry, dict):
        return None
    combo = entry.get("combo")
    if not isinstance(combo, str) or not combo.strip():
        return None
    try:
        return ComboRanking(
            combo=combo,
            position=_optional_int(entry.get("position")),
            total_results=_optional_int(entry.get("totalResults")),
            trend=entry.get("trend"),
            position_change=_optional_int(entry.get("positionChange")),
            checked_at=parse_timestamp(entry.get("checkedAt")),
        )
    except (TypeError, ValueError, OverflowError):
        return None


def parse_popularity_entry(entry: Any) -> Optional[KeywordPopularity]:
    """
    Parse one popularity score entry.

    Returns:
        KeywordPopularity, or None when the entry is malformed.
    """
    if not isinstance(entry, dict):
        return None
    keyword = entry.get("keyword")
    if not isinstance(keyword, str) or not keyword.strip():
        return None
    try:
        popularity_score = _optional_float(entry.get("popularity_score"))
        if popularity_score is None:
            return None
        return KeywordPopularity(
            keyword=keyword,
            popularity_score=popularity_score,
            intent_score=_optional_float(entry.get("intent_score")),
            autocomplete_score=_optional_float(entry.get("autocomplete_score"), 0.0),
            length_prior=_optional_float(entry.get("length_prior"), 0.0),
            data_quality=str(entry.get("data_quality") or "complete").lower(),
        )
    except (TypeError, ValueError, OverflowError):
        return None


def _entries(payload: Any, key: str) -> list:
    if not isinstance(payload, dict):
        raise ProviderError(f"Expected a JSON object, got {type(payload).__name__}")
    entries = payload.get(key, [])
    if not isinstance(entries, list):
        raise ProviderError(f"Expected '{key}' to be a list")
    return entries


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


# =============================================================================
# HTTP providers
# =============================================================================

class _HttpProvider:
    """Shared httpx plumbing for the JSON POST providers."""

    def __init__(
        self,
        base_url: str,
        path: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            base_url: Service root, e.g. "https://signals.example.com".
            path: Endpoint path below base_url.
            api_key: Optional bearer token.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used to mock the service).
        """
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, client: httpx.AsyncClient, body: dict) -> Any:
        try:
            response = await client.post(self.path, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"{self.base_url}{self.path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {self.base_url}{self.path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {self.base_url}{self.path}: {e}") from e

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )


class HttpRankingProvider(_HttpProvider, RankingProvider):
    """
    Ranking provider backed by a JSON HTTP service.

    Request (POST {base_url}/rankings):
        {"appId": ..., "combos": [...], "country": ..., "platform": ...}
    Response:
        {"results": [{"combo", "position", "totalResults", "trend",
                      "positionChange", "checkedAt"}, ...]}

    Combos are sent in chunks of at most `batch_size`. If some chunks fail
    the rankings of the others are still returned; if all fail,
    ProviderError is raised.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        path: str = "/rankings",
    ):
        super().__init__(base_url, path, api_key=api_key, timeout=timeout, transport=transport)
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size

    async def fetch_rankings(
        self,
        app_id: str,
        combos: list[str],
        region: str,
        platform: str,
    ) -> dict[str, ComboRanking]:
        if not combos:
            return {}

        rankings: dict[str, ComboRanking] = {}
        failures: list[str] = []
        batches = list(_chunks(combos, self.batch_size))

        async with self._client() as client:
            for batch in batches:
                try:
                    payload = await self._post(client, {
                        "appId": app_id,
                        "combos": batch,
                        "country": region,
                        "platform": platform,
                    })
                    entries = _entries(payload, "results")
                except ProviderError as e:
                    failures.append(str(e))
                    continue

                skipped = 0
                for entry in entries:
                    ranking = parse_ranking_entry(entry)
                    if ranking is None:
                        skipped += 1
                        continue
                    rankings[ranking.combo] = ranking
                if skipped:
                    logger.warning("Skipped %d malformed ranking entries", skipped)

        if failures and len(failures) == len(batches):
            raise ProviderError(failures[0])
        if failures:
            logger.warning(
                "%d of %d ranking batches failed: %s",
                len(failures), len(batches), failures[0],
            )
        return rankings


class HttpPopularityProvider(_HttpProvider, PopularityProvider):
    """
    Popularity provider backed by a JSON HTTP service.

    Request (POST {base_url}/popularity):
        {"keywords": [...], "region": ...}
    Response:
        {"scores": [{"keyword", "popularity_score", "intent_score",
                     "autocomplete_score", "length_prior", "data_quality"}, ...]}
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        path: str = "/popularity",
    ):
        super().__init__(base_url, path, api_key=api_key, timeout=timeout, transport=transport)

    async def fetch_popularity(
        self,
        keywords: list[str],
        region: str,
    ) -> dict[str, KeywordPopularity]:
        if not keywords:
            return {}

        async with self._client() as client:
            payload = await self._post(client, {"keywords": keywords, "region": region})

        popularity: dict[str, KeywordPopularity] = {}
        skipped = 0
        for entry in _entries(payload, "scores"):
            item = parse_popularity_entry(entry)
            if item is None:
                skipped += 1
                continue
            popularity[item.keyword] = item
        if skipped:
            logger.warning("Skipped %d malformed popularity entries", skipped)
        return popularity


# =============================================================================
# In-memory providers
# =============================================================================

class StaticRankingProvider(RankingProvider):
    """Serves rankings from memory (signal files, fixtures, API payloads)."""

    def __init__(self, rankings: Optional[Iterable[ComboRanking]] = None):
        self.rankings = {r.combo: r for r in (rankings or [])}

    async def fetch_rankings(
        self,
        app_id: str,
        combos: list[str],
        region: str,
        platform: str,
    ) -> dict[str, ComboRanking]:
        wanted = {" ".join(c.lower().split()) for c in combos}
        return {combo: r for combo, r in self.rankings.items() if combo in wanted}


class StaticPopularityProvider(PopularityProvider):
    """Serves keyword popularity from memory."""

    def __init__(self, popularity: Optional[Iterable[KeywordPopularity]] = None):
        self.popularity = {p.keyword: p for p in (popularity or [])}

    async def fetch_popularity(
        self,
        keywords: list[str],
        region: str,
    ) -> dict[str, KeywordPopularity]:
        wanted = {k.strip().lower() for k in keywords}
        return {k: p for k, p in self.popularity.items() if k in wanted}


# =============================================================================
# Batched fetch
# =============================================================================

async def _guarded(
    name: str,
    coro,
    timeout: float,
    budget: Optional[float] = None,
) -> tuple[dict, Optional[str]]:
    """
    Await a provider call with a timeout; failures become (empty, error).

    Any exception raised by the provider is contained here.

    Args:
        name: "ranking" or "popularity", used in messages.
        coro: The provider coroutine.
        timeout: Seconds left for this call.
        budget: Total seconds reported in the timeout message (defaults to timeout).
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout), None
    except asyncio.TimeoutError:
        message = f"{name} provider timed out after {budget or timeout:g}s"
    except (ProviderError, httpx.HTTPError) as e:
        message = f"{name} provider failed: {e}"
    except Exception as e:
        logger.debug("%s provider raised", name, exc_info=True)
        message = f"{name} provider failed: {type(e).__name__}: {e}"
    logger.warning("%s; continuing without those %s signals", message, name)
    return {}, message


async def _fetch_ranking_batches(
    provider: RankingProvider,
    combos: list[str],
    app_id: str,
    region: str,
    platform: str,
    timeout: float,
) -> tuple[dict, Optional[str]]:
    """
    Fetch rankings batch by batch under one overall deadline.

    Batches that completed before a failure or the deadline are kept.
    Batch size comes from the provider's `batch_size` when it has one.

    Returns:
        (rankings, first error message or None)
    """
    batch_size = max(1, int(getattr(provider, "batch_size", DEFAULT_BATCH_SIZE)))
    batches = list(_chunks(combos, batch_size))
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    rankings: dict[str, ComboRanking] = {}
    errors: list[str] = []
    for index, batch in enumerate(batches):
        remaining = deadline - loop.time()
        if remaining <= 0:
            message = (
                f"ranking provider timed out after {timeout:g}s; "
                f"{len(batches) - index} of {len(batches)} batches not fetched"
            )
            logger.warning("%s", message)
            errors.append(message)
            break
        result, error = await _guarded(
            "ranking",
            provider.fetch_rankings(app_id, batch, region, platform),
            remaining,
            budget=timeout,
        )
        if error:
            errors.append(error)
        rankings.update(result)

    if errors and rankings:
        logger.warning(
            "Kept %d rankings from completed batches despite: %s",
            len(rankings), errors[0],
        )
    return rankings, (errors[0] if errors else None)


async def fetch_signals(
    combos: list[str],
    keywords: list[str],
    ranking_provider: Optional[RankingProvider] = None,
    popularity_provider: Optional[PopularityProvider] = None,
    app_id: str = "",
    region: str = "us",
    platform: str = "ios",
    timeout: float = 10.0,
) -> SignalBundle:
    """
    Fetch ranking and popularity signals concurrently, once per run.

    Args:
        combos: Every generated combo text.
        keywords: Distinct keywords used by those combos.
        ranking_provider: Optional ranking source.
        popularity_provider: Optional popularity source.
        app_id: App identifier forwarded to the ranking provider.
        region: Storefront/country code.
        platform: Store platform.
        timeout: Seconds allowed per provider. Ranking batches share this
            deadline; batches finished before it are kept.

    Returns:
        SignalBundle. Never raises for provider failures.
    """
    async def no_signals() -> tuple[dict, Optional[str]]:
        return {}, None

    ranking_call = (
        _fetch_ranking_batches(ranking_provider, combos, app_id, region, platform, timeout)
        if ranking_provider is not None and combos
        else no_signals()
    )
    popularity_call = (
        _guarded("popularity", popularity_provider.fetch_popularity(keywords, region), timeout)
        if popularity_provider is not None and keywords
        else no_signals()
    )

    (rankings, ranking_error), (popularity, popularity_error) = await asyncio.gather(
        ranking_call,
        popularity_call,
    )

    bundle = SignalBundle(
        rankings=rankings,
        popularity=popularity,
        ranking_error=ranking_error,
        popularity_error=popularity_error,
    )
    logger.debug(
        "Fetched signals: %d rankings, %d popularity entries",
        len(bundle.rankings),
        len(bundle.popularity),
    )
    return bundle
