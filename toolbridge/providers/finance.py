"""
Financial quotes through the SerpApi google_finance engine.

Pipeline: build query -> GET -> normalize_quote -> project_quote -> render_quote.

The google_finance payload varies a lot with the instrument type: equities
carry a `summary` block, futures often only a `futures_chain`, key statistics
sit either in `price_insights` or in `knowledge_graph.key_stats.stats`, and
news may be a list, a `{results: [...]}` wrapper, `news_results` with nested
`items`, or `markets.top_news`. normalize_quote resolves all of these through
the named resolvers below into a single Quote.

Projection has two modes:

    summary (default)  headline + price analysis + compact futures list
    detailed           headline + price analysis + news + markets + related

The compact futures list appears only in summary mode. Everything else the
summary shows is also shown in detailed mode.
"""

import logging
import re
from dataclasses import dataclass, replace

from toolbridge.credentials import ApiKeyCredential, ProviderKind, resolve
from toolbridge.errors import EmptyResultError
from toolbridge.markdown import MarkdownDocument, format_number, is_present
from toolbridge.resolvers import Resolver, as_list, dig, first_record, is_usable, text
from toolbridge.providers import serpapi
from toolbridge.schemas import FinanceSearchRequest

logger = logging.getLogger(__name__)

_LEADING_CURRENCY = re.compile(r"^\s*([^\d\-+.,\s]+)\s*(.*)$")

# Where the primary quote record may live, highest priority first.
PRIMARY_SOURCES = ("summary", "futures_chain")

MARKET_REGIONS = ("us", "europe", "asia", "currencies", "crypto", "futures")

# --- Quote (primary record) resolvers ---
SYMBOL = Resolver("symbol", "stock", "symbol", "ticker")
NAME = Resolver("name", "title", "name")
EXCHANGE = Resolver("exchange", "exchange")
PRICE = Resolver(
    "price", "extracted_price", "price", "market.extracted_price", "market.price"
)
CURRENCY = Resolver("currency", "currency", "market.currency")
MOVEMENT = Resolver("movement", "price_movement", "market.price_movement")

# --- Key statistics: price_insights first, knowledge graph labels second ---
STAT_LABELS = {
    "previous_close": ("previous close", "prev close"),
    "day_range": ("day range",),
    "year_range": ("year range", "52-week range", "52 week range"),
    "market_cap": ("market cap",),
    "pe_ratio": ("p/e ratio", "pe ratio"),
    "dividend_yield": ("dividend yield",),
}

# --- List items ---
NEWS_TITLE = Resolver("title", "title", "headline")
NEWS_DATE = Resolver("date", "date", "published_date", "iso_date")
NEWS_SNIPPET = Resolver("snippet", "snippet", "description")
NEWS_LINK = Resolver("link", "link", "url")
NEWS_SOURCE = Resolver("source", "source.name", "source")
FUTURE_LABEL = Resolver("label", "date", "stock", "name")
FUTURE_PRICE = Resolver("price", "price", "extracted_price")
FUTURE_CHANGE = Resolver("change", "change", "price_movement.percentage")
RELATED_LABEL = Resolver("related", "stock", "symbol", "name", "title")


# ---------------------------------------------------------------------------
# Normalized result
# ---------------------------------------------------------------------------
# Quote holds everything the payload offered, independent of the request
# flags. Trimming to the caller's caps happens later, in project_quote().


@dataclass(frozen=True)
class Movement:
    direction: str  # "up", "down" or "flat"
    percentage: float | str | None
    value: float | str | None


@dataclass(frozen=True)
class PriceInsights:
    previous_close: str | None = None
    day_range: str | None = None
    year_range: str | None = None
    market_cap: str | None = None
    pe_ratio: str | None = None
    dividend_yield: str | None = None

    def is_empty(self) -> bool:
        return not any(is_present(v) for v in vars(self).values())


@dataclass(frozen=True)
class FutureContract:
    label: str
    price: float | str | None
    change: str | None = None


@dataclass(frozen=True)
class NewsArticle:
    title: str
    source: str | None = None
    date: str | None = None
    snippet: str | None = None
    link: str | None = None


@dataclass(frozen=True)
class MarketIndex:
    region: str
    name: str
    price: float | str | None
    percentage: float | str | None


@dataclass(frozen=True)
class MarketOverview:
    indexes: tuple[MarketIndex, ...] = ()
    news_count: int = 0


@dataclass(frozen=True)
class Quote:
    symbol: str
    name: str | None
    price: float | str | None
    currency: str | None
    movement: Movement | None
    exchange: str | None = None
    price_insights: PriceInsights | None = None
    futures: tuple[FutureContract, ...] = ()
    news: tuple[NewsArticle, ...] = ()
    markets: MarketOverview | None = None
    related: tuple[str, ...] = ()


@dataclass(frozen=True)
class FinanceFlags:
    summary_only: bool = True
    include_news: bool = True
    include_markets: bool = False
    include_discover: bool = False
    include_price_insights: bool = True
    max_news: int = 5
    max_futures: int = 3
    max_related: int = 5

    @classmethod
    def from_request(cls, request: FinanceSearchRequest) -> "FinanceFlags":
        return cls(
            summary_only=request.summary_only,
            include_news=request.include_news,
            include_markets=request.include_markets,
            include_discover=request.include_discover,
            include_price_insights=request.include_price_insights,
            max_news=request.max_news,
            max_futures=request.max_futures,
            max_related=request.max_related,
        )


@dataclass(frozen=True)
class QuoteProjection:
    title: str
    symbol: str
    name: str | None
    price: float | str | None
    currency: str | None
    movement: Movement | None
    price_insights: PriceInsights | None = None
    futures: tuple[FutureContract, ...] = ()
    news: tuple[NewsArticle, ...] = ()
    markets: MarketOverview | None = None
    related: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Request builder
# ---------------------------------------------------------------------------
# `window` and `no_cache` are optional and only sent when supplied.


def build_finance_params(request: FinanceSearchRequest, credential: ApiKeyCredential) -> dict:
    params = {
        "engine": "google_finance",
        "api_key": credential.api_key,
        "q": request.q,
        "hl": "en",
    }
    if request.window is not None:
        params["window"] = request.window
    if request.no_cache is not None:
        params["no_cache"] = str(request.no_cache).lower()
    return params


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------
# Each field is read through an ordered Resolver and the first usable value
# wins. The main fallbacks:
# - primary record: `summary`, then the first `futures_chain` entry
# - key statistics: `price_insights`, then the knowledge graph labels
# - a textual price is split into amount and currency symbol when the
#   payload has no currency field
#
# A payload without a usable primary record raises EmptyResultError.


def split_price(price, currency: str | None) -> tuple[float | str | None, str | None]:
    """
    Separate a textual price like "$172.63" into ("172.63", "$").

    Only applied when the provider gave no separate currency field; numbers
    and already-split values pass through unchanged.
    """
    if currency or not isinstance(price, str):
        return price, currency
    match = _LEADING_CURRENCY.match(price)
    if match is None:
        return price.strip(), currency
    symbol, magnitude = match.groups()
    return magnitude.strip() or None, symbol


def normalize_movement(raw_movement) -> Movement | None:
    if not isinstance(raw_movement, dict):
        return None
    direction = str(raw_movement.get("movement") or "").lower()
    if direction not in ("up", "down"):
        direction = "flat"
    percentage = raw_movement.get("percentage")
    # The renderer adds the percent sign; textual values sometimes carry one.
    if isinstance(percentage, str):
        percentage = percentage.strip().removesuffix("%").strip() or None
    value = raw_movement.get("value")
    if percentage is None and value is None:
        return None
    return Movement(direction=direction, percentage=percentage, value=value)


def normalize_insights(raw: dict) -> PriceInsights | None:
    values: dict[str, str | None] = {}
    insights = raw.get("price_insights")
    if isinstance(insights, dict):
        for field in STAT_LABELS:
            values[field] = text(insights.get(field))

    stats = dig(raw, ("knowledge_graph", "key_stats", "stats"))
    if isinstance(stats, list):
        by_label = {
            str(stat.get("label", "")).strip().lower(): text(stat.get("value"))
            for stat in stats
            if isinstance(stat, dict)
        }
        for field, labels in STAT_LABELS.items():
            if values.get(field) is None:
                values[field] = next(
                    (by_label[label] for label in labels if by_label.get(label)), None
                )

    result = PriceInsights(**values)
    return None if result.is_empty() else result


def _news_results(raw: dict) -> list:
    """news_results entries are either articles or groups with nested items."""
    records = []
    for entry in raw.get("news_results") or []:
        if not isinstance(entry, dict):
            continue
        items = entry.get("items")
        records.extend(items if isinstance(items, list) else [entry])
    return records


def normalize_news(raw: dict) -> tuple[NewsArticle, ...]:
    """First non-empty news source wins: top_news, news_results, markets.top_news."""
    candidates = (
        as_list(raw.get("top_news")),
        _news_results(raw),
        as_list(dig(raw, ("markets", "top_news"))),
    )
    for records in candidates:
        articles = []
        for record in records:
            if not isinstance(record, dict):
                continue
            title = text(NEWS_TITLE.resolve(record))
            if title is None:
                continue
            articles.append(
                NewsArticle(
                    title=title,
                    source=text(NEWS_SOURCE.resolve(record)),
                    date=text(NEWS_DATE.resolve(record)),
                    snippet=text(NEWS_SNIPPET.resolve(record)),
                    link=text(NEWS_LINK.resolve(record)),
                )
            )
        if articles:
            return tuple(articles)
    return ()


def normalize_futures(raw: dict) -> tuple[FutureContract, ...]:
    futures = []
    for record in raw.get("futures_chain") or []:
        if not isinstance(record, dict):
            continue
        label = text(FUTURE_LABEL.resolve(record))
        if label is None:
            continue
        futures.append(
            FutureContract(
                label=label,
                price=FUTURE_PRICE.resolve(record),
                change=text(FUTURE_CHANGE.resolve(record)),
            )
        )
    return tuple(futures)


def normalize_markets(raw: dict) -> MarketOverview | None:
    markets = raw.get("markets")
    if not isinstance(markets, dict):
        return None
    indexes = []
    for region in MARKET_REGIONS:
        for record in markets.get(region) or []:
            if not isinstance(record, dict):
                continue
            name = text(NAME.resolve(record)) or text(SYMBOL.resolve(record))
            if name is None:
                continue
            movement = normalize_movement(MOVEMENT.resolve(record))
            indexes.append(
                MarketIndex(
                    region=region,
                    name=name,
                    price=PRICE.resolve(record),
                    percentage=movement.percentage if movement else None,
                )
            )
    news_count = len(as_list(markets.get("top_news")))
    if not indexes and not news_count:
        return None
    return MarketOverview(indexes=tuple(indexes), news_count=news_count)


def normalize_related(raw: dict) -> tuple[str, ...]:
    discover = raw.get("discover_more")
    records: list = []
    if isinstance(discover, dict) and isinstance(discover.get("similar_stocks"), list):
        records = discover["similar_stocks"]
    elif isinstance(discover, list):
        for group in discover:
            if isinstance(group, dict) and isinstance(group.get("items"), list):
                records.extend(group["items"])

    related = []
    for record in records:
        label = text(record) if isinstance(record, str) else text(RELATED_LABEL.resolve(record))
        if label is not None and label not in related:
            related.append(label)
    return tuple(related)


def normalize_quote(raw: dict, request: FinanceSearchRequest) -> Quote:
    """
    Resolve the provider payload into a Quote.

    The primary record is the top-level `summary` when it carries a price,
    else the first entry of `futures_chain`. A payload where neither yields a
    price is a data failure.
    """
    empty_message = f"No financial data found for '{request.q}'."
    serpapi.check_error(raw, empty_message)

    for candidate in PRIMARY_SOURCES:
        primary = first_record(raw.get(candidate))
        if primary is not None and is_usable(PRICE.resolve(primary)):
            break
    else:
        raise EmptyResultError(empty_message)

    price, currency = split_price(PRICE.resolve(primary), text(CURRENCY.resolve(primary)))
    if not is_usable(price):
        raise EmptyResultError(empty_message)

    return Quote(
        symbol=text(SYMBOL.resolve(primary)) or request.q,
        name=text(NAME.resolve(primary)),
        price=price,
        currency=currency,
        movement=normalize_movement(MOVEMENT.resolve(primary)),
        exchange=text(EXCHANGE.resolve(primary)),
        price_insights=normalize_insights(raw),
        futures=normalize_futures(raw),
        news=normalize_news(raw),
        markets=normalize_markets(raw),
        related=normalize_related(raw),
    )


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------
# project_quote() applies the request flags. Caps keep a prefix of each
# normalized list, so raising a cap never reorders earlier items. A cap of
# zero or less drops the section.


def _prefix(items: tuple, limit: int) -> tuple:
    return items[: limit] if limit > 0 else ()


def project_quote(quote: Quote, flags: FinanceFlags, title: str) -> QuoteProjection:
    projection = QuoteProjection(
        title=title,
        symbol=quote.symbol,
        name=quote.name,
        price=quote.price,
        currency=quote.currency,
        movement=quote.movement,
        price_insights=quote.price_insights if flags.include_price_insights else None,
    )
    if flags.summary_only:
        return replace(projection, futures=_prefix(quote.futures, flags.max_futures))
    return replace(
        projection,
        news=_prefix(quote.news, flags.max_news) if flags.include_news else (),
        markets=quote.markets if flags.include_markets else None,
        related=_prefix(quote.related, flags.max_related) if flags.include_discover else (),
    )


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------
# Sections are written in a fixed order and skipped when empty. The arrow
# follows the movement direction; numeric change values get an explicit sign.

_ARROWS = {"up": "📈", "down": "📉", "flat": "➡️"}


def _signed(value) -> str:
    if isinstance(value, (int, float)):
        return f"+{format_number(value)}" if value >= 0 else format_number(value)
    return str(value)


def render_quote(projection: QuoteProjection) -> str:
    doc = MarkdownDocument().title(projection.title)

    doc.line(f"Current Price: {projection.currency or '$'}{format_number(projection.price)}")
    movement = projection.movement
    if movement is not None:
        parts = [_ARROWS[movement.direction]]
        if movement.percentage is not None:
            parts.append(f"{format_number(movement.percentage)}%")
        if movement.value is not None:
            parts.append(f"({_signed(movement.value)})")
        doc.line(f"Change: {' '.join(parts)}")
    if projection.name and projection.name != projection.symbol:
        doc.line(f"Name: {projection.name}")
    if projection.symbol != projection.title:
        doc.line(f"Symbol: {projection.symbol}")
    doc.blank()

    insights = projection.price_insights
    if insights is not None:
        doc.section("Price Analysis")
        doc.field("Previous Close", insights.previous_close)
        doc.field("Day Range", insights.day_range)
        doc.field("52-Week Range", insights.year_range)
        doc.field("Market Cap", insights.market_cap)
        doc.field("P/E Ratio", insights.pe_ratio)
        doc.field("Dividend Yield", insights.dividend_yield)
        doc.blank()

    if projection.futures:
        doc.section("Futures Contracts")
        for future in projection.futures:
            price = f": {format_number(future.price)}" if is_present(future.price) else ""
            change = f" ({future.change})" if future.change else ""
            doc.line(f"{future.label}{price}{change}")
        doc.blank()

    if projection.news:
        doc.section("Latest News")
        for index, article in enumerate(projection.news, 1):
            doc.heading(f"{index}. {article.title}", level=3)
            doc.field("Source", article.source)
            doc.field("Date", article.date)
            if article.snippet:
                doc.line(article.snippet)
            if article.link:
                doc.line(f"[Read More]({article.link})")
            doc.blank()

    markets = projection.markets
    if markets is not None:
        doc.section("Market Overview")
        for index in markets.indexes:
            change = f" ({format_number(index.percentage)}%)" if index.percentage is not None else ""
            price = f": {format_number(index.price)}" if is_present(index.price) else ""
            doc.bullet(f"{index.name}{price}{change}")
        if markets.news_count:
            if markets.indexes:
                doc.blank()
            doc.line(f"Market News Available: {markets.news_count} articles")
        doc.blank()

    if projection.related:
        doc.section("Related")
        doc.line(f"Similar Instruments: {', '.join(projection.related)}")
        doc.blank()

    return doc.render()


# ---------------------------------------------------------------------------
# Tool pipeline
# ---------------------------------------------------------------------------
# The query string doubles as the document title.


async def search_finance(request: FinanceSearchRequest) -> str:
    credential = resolve(ProviderKind.FINANCE)
    raw = await serpapi.search(build_finance_params(request, credential), provider="Finance API")
    quote = normalize_quote(raw, request)
    logger.debug("Resolved quote for %s", quote.symbol)
    projection = project_quote(quote, FinanceFlags.from_request(request), title=request.q)
    return render_quote(projection)
