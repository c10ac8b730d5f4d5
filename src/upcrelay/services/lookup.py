"""Barcode lookup against the eBay Browse item-search API.

A lookup runs in two stages: a structured ``upc:`` filter first, and a
free-text query only when the filter found nothing.  A failing stage is
logged and counts as an empty one, so upstream search errors surface to the
caller as "not found" rather than as an error.
"""

import logging
import re
from dataclasses import dataclass, field

import httpx

from upcrelay.config import BROWSE_URL
from upcrelay.models import LookupItem, LookupResponse
from upcrelay.services.token import DEFAULT_TIMEOUT, TokenManager

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")


class ValidationError(Exception):
    """The supplied code is missing or has no usable characters."""


class UpstreamSearchError(Exception):
    """A single search stage failed (network error, timeout, HTTP error)."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage} search failed: {message}")
        self.stage = stage


@dataclass
class StageOutcome:
    """Items returned by one search stage, or the reason it failed."""

    stage: str
    items: list[dict] = field(default_factory=list)
    error: UpstreamSearchError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def normalize_code(raw: str) -> str:
    """Trim *raw* and drop every character that is not an ASCII letter or digit.

    >>> normalize_code(" 123-456 789 ")
    '123456789'
    """
    return _NON_ALNUM.sub("", raw.strip())


def _text(value) -> str | None:
    """Pass scalars through as strings; anything else becomes ``None``."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def dedup_key(item: dict) -> str | None:
    """Identity of a listing: its ``itemId``, else its web URL, else ``None``."""
    return _text(item.get("itemId")) or _text(item.get("itemWebUrl")) or None


def dedupe_items(items: list[dict]) -> list[dict]:
    """Drop repeated listings, keeping the first occurrence of each key.

    Listings without any key are dropped as well.
    """
    seen: set[str] = set()
    unique: list[dict] = []
    for item in items:
        key = dedup_key(item)
        if key is None or key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def _first_present(*values):
    return next((v for v in values if v is not None), None)


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _amount(value) -> str | float | None:
    if isinstance(value, (str, float)):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return None


def shape_item(item: dict) -> LookupItem:
    """Map a Browse API ``itemSummary`` onto the stable response shape."""
    price = _dict(item.get("price"))
    thumbnails = item.get("thumbnailImages") or []
    thumbnail = _dict(thumbnails[0]).get("imageUrl") if isinstance(thumbnails, list) and thumbnails else None

    return LookupItem(
        id=_text(item.get("itemId")),
        title=_text(item.get("title")),
        brand=_first_present(_text(item.get("brand")), _text(item.get("itemBrand"))),
        condition=_text(item.get("condition")),
        price=_amount(price.get("value")),
        currency=_text(price.get("currency")),
        image=_first_present(_text(thumbnail), _text(_dict(item.get("image")).get("imageUrl"))),
        url=_text(item.get("itemWebUrl")),
        seller=_text(_dict(item.get("seller")).get("username")),
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class LookupPipeline:
    """Resolve a product code to de-duplicated eBay listings.

    Args:
        token_manager:  Source of bearer tokens for the search calls.
        http_client:    Shared ``httpx.AsyncClient``.
        browse_url:     Base URL of the Browse API (``.../buy/browse/v1``).
        marketplace_id: Value for the ``X-EBAY-C-MARKETPLACE-ID`` header.
        timeout:        Per-call timeout in seconds.
        limit:          Page size requested from each stage.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        http_client: httpx.AsyncClient,
        *,
        browse_url: str = BROWSE_URL,
        marketplace_id: str = "EBAY_US",
        timeout: float = DEFAULT_TIMEOUT,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.token_manager = token_manager
        self.browse_url = browse_url.rstrip("/")
        self.marketplace_id = marketplace_id
        self.timeout = timeout
        self.limit = limit
        self._http = http_client

    @property
    def search_url(self) -> str:
        return f"{self.browse_url}/item_summary/search"

    async def search(self, raw_code: str | None) -> LookupResponse:
        """Look up *raw_code* and return the shaped result.

        Raises:
            ValidationError: *raw_code* is missing or normalizes to nothing.
            AuthError: no access token could be obtained.
        """
        if not raw_code:
            raise ValidationError("Missing ?code=")
        code = normalize_code(raw_code)
        if not code:
            raise ValidationError("Invalid code")

        token = await self.token_manager.get_token()

        outcomes = [await self._run_stage("upc", {"filter": f"upc:{code}"}, token)]
        if not outcomes[0].items:
            outcomes.append(await self._run_stage("keyword", {"q": code}, token))

        for outcome in outcomes:
            if outcome.failed:
                logger.warning("Lookup %s: %s", code, outcome.error)

        collected = [item for outcome in outcomes for item in outcome.items]
        if not collected:
            return LookupResponse(success=True, found=False, code=code, items=[])

        items = [shape_item(item) for item in dedupe_items(collected)]
        logger.debug("Lookup %s: %d listings, %d unique", code, len(collected), len(items))
        return LookupResponse(success=True, found=True, code=code, total_found=len(items), items=items)

    async def _run_stage(self, stage: str, params: dict, token: str) -> StageOutcome:
        """Run one search call; failures are captured in the outcome."""
        headers = {
            "Authorization": f"Bearer {token}",
            "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
        }
        try:
            response = await self._http.get(
                self.search_url,
                params={**params, "limit": self.limit},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            return StageOutcome(stage, error=UpstreamSearchError(stage, f"timed out: {e}"))
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                # Token rejected before its recorded expiry; refresh on the next lookup.
                self.token_manager.invalidate()
            return StageOutcome(stage, error=UpstreamSearchError(stage, str(e)))
        except httpx.HTTPError as e:
            return StageOutcome(stage, error=UpstreamSearchError(stage, str(e)))
        except ValueError as e:
            return StageOutcome(stage, error=UpstreamSearchError(stage, f"invalid JSON: {e}"))

        items = data.get("itemSummaries") if isinstance(data, dict) else None
        if not isinstance(items, list):
            items = []
        return StageOutcome(stage, items=[item for item in items if isinstance(item, dict)])
