"""Core data models for ledger-query.

This module defines the dataclasses shared by the fetch orchestrator, the
condition evaluator, the output formatter, and the bulk mutation layer. It
has zero internal imports -- everything depends on it, but it depends on
nothing within the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Record kinds as exposed to callers, and the names the remote ledger uses
# for the same kinds.
KINDS = ("outflow", "inflow", "transfer")

KIND_ALIASES = {
    "outflow": "outflow",
    "inflow": "inflow",
    "transfer": "transfer",
    "payment": "outflow",
    "income": "inflow",
}

REMOTE_KINDS = {
    "outflow": "payment",
    "inflow": "income",
    "transfer": "transfer",
}

# Field order used when a record is rendered in full.
RECORD_FIELDS = (
    "id",
    "kind",
    "user_id",
    "date",
    "category_id",
    "genre_id",
    "account_id",
    "from_account_id",
    "to_account_id",
    "amount",
    "place",
    "name",
    "comment",
    "active",
    "created",
    "currency_code",
    "category",
    "genre",
    "account",
)

OUTPUT_MODES = ("id_only", "specified", "full")


def normalize_kind(value: str | None) -> str | None:
    """Map a remote or caller kind name onto ``outflow``/``inflow``/``transfer``.

    Unknown names are returned lowercased so they never match a kind
    predicate by accident.
    """
    if value is None:
        return None
    lowered = str(value).strip().lower()
    return KIND_ALIASES.get(lowered, lowered)


@dataclass(frozen=True)
class Record:
    """A single ledger entry as returned by the remote API.

    Only ``id`` is required. Every other field may be absent on a given
    record (transfers carry no category, outflows carry no
    ``to_account_id``, and so on); absent fields are ``None`` and any
    predicate on them evaluates to false.

    Attributes:
        id: Remote identity of the entry.
        kind: ``"outflow"``, ``"inflow"`` or ``"transfer"``.
        date: Calendar date, ``YYYY-MM-DD`` (the remote may append a time).
        amount: Entry amount.
        category_id: Category identifier.
        genre_id: Genre (sub-category) identifier.
        account_id: Account identifier.
        from_account_id: Source account for outflows and transfers.
        to_account_id: Destination account for inflows and transfers.
        place: Free-text shop or payee.
        name: Free-text item name.
        comment: Free-text comment.
        category: Display name of the category.
        genre: Display name of the genre.
        account: Display name of the account.
    """

    id: int
    kind: str | None = None
    date: str | None = None
    amount: float | None = None
    user_id: int | None = None
    category_id: int | None = None
    genre_id: int | None = None
    account_id: int | None = None
    from_account_id: int | None = None
    to_account_id: int | None = None
    place: str | None = None
    name: str | None = None
    comment: str | None = None
    active: int | None = None
    created: str | None = None
    currency_code: str | None = None
    category: str | None = None
    genre: str | None = None
    account: str | None = None

    def to_dict(self) -> dict:
        """Return the record as a plain dict, omitting absent fields."""
        data: dict = {}
        for name in RECORD_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


def record_from_dict(data: dict) -> Record:
    """Build a :class:`Record` from a remote API money entry.

    The remote names the kind ``mode`` and uses ``payment``/``income``;
    both spellings are accepted. Unknown keys are ignored.

    Raises:
        KeyError: If *data* has no ``id``.
        ValueError: If ``id`` is not an integer.
    """
    raw_kind = data.get("kind", data.get("mode"))
    values = {name: data.get(name) for name in RECORD_FIELDS if name not in ("id", "kind")}
    return Record(id=int(data["id"]), kind=normalize_kind(raw_kind), **values)


@dataclass(frozen=True)
class DateWindow:
    """An inclusive ``start``..``end`` range of ``YYYY-MM-DD`` dates."""

    start: str
    end: str


@dataclass(frozen=True)
class OutputControl:
    """Shape and size limits applied to search output.

    Attributes:
        mode: ``"id_only"``, ``"specified"`` or ``"full"``.
        fields: Allow-list used when ``mode == "specified"``. An empty or
            missing list makes ``specified`` behave like ``full``.
        max_chars_per_record: Serialized length cap for a single record.
        max_total_chars: Serialized length cap for the whole result.
        max_records: Maximum number of records considered for output.
    """

    mode: str = "full"
    fields: tuple[str, ...] | None = None
    max_chars_per_record: int | None = None
    max_total_chars: int | None = None
    max_records: int | None = None


@dataclass(frozen=True)
class StringUpdate:
    """How to rewrite a free-text field during a bulk update.

    ``replace`` sets the field to ``new_value``. ``partial`` replaces every
    literal occurrence of ``search_pattern`` in the current text with
    ``replace_with`` (empty string when omitted).
    """

    mode: str
    new_value: str | None = None
    search_pattern: str | None = None
    replace_with: str | None = None


# Update fields in the order they are reported in previews.
UPDATE_FIELDS = (
    "category_id",
    "genre_id",
    "amount",
    "account_id",
    "from_account_id",
    "to_account_id",
    "date",
    "place",
    "name",
    "comment",
)

STRING_UPDATE_FIELDS = ("place", "name", "comment")


@dataclass(frozen=True)
class UpdateSpec:
    """The set of field changes a bulk update applies to every target."""

    category_id: int | None = None
    genre_id: int | None = None
    amount: float | None = None
    account_id: int | None = None
    from_account_id: int | None = None
    to_account_id: int | None = None
    date: str | None = None
    place: StringUpdate | None = None
    name: StringUpdate | None = None
    comment: StringUpdate | None = None

    def fields(self) -> list[str]:
        """Names of the fields this update touches, in report order."""
        return [name for name in UPDATE_FIELDS if getattr(self, name) is not None]


# ---------------------------------------------------------------------------
# Orchestration settings and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchOptions:
    """Pagination settings for the fetch orchestrator.

    Attributes:
        page_size: Records requested per page. Capped at 100.
        max_pages: Safety limit on pages walked within one sub-window.
        max_records: Optional cap on the total number of records returned.
        delay_seconds: Pause between successive page requests.
        days_per_chunk: Span of each sub-window the date range is split into.
        start_page: First page number requested in each sub-window.
    """

    page_size: int = 100
    max_pages: int = 100
    max_records: int | None = None
    delay_seconds: float = 0.2
    days_per_chunk: int = 31
    start_page: int = 1


@dataclass
class FetchResult:
    """Outcome of a paginated fetch.

    Attributes:
        records: Deduplicated records, in first-seen order.
        pages_retrieved: Number of page requests that returned data.
        has_more: True if a safety limit stopped the walk early.
        has_error: True if a page request failed.
        error_message: The failing request's error message.
    """

    records: list[Record] = field(default_factory=list)
    pages_retrieved: int = 0
    has_more: bool = False
    has_error: bool = False
    error_message: str | None = None

    @property
    def total_records(self) -> int:
        return len(self.records)


@dataclass
class FormatResult:
    """Shaped, size-bounded output produced by the formatter."""

    records: list = field(default_factory=list)
    count: int = 0
    truncated: bool = False
    truncated_count: int = 0


@dataclass
class SearchMeta:
    pages_retrieved: int = 0
    total_fetched: int = 0
    matched_count: int = 0
    output_count: int = 0


@dataclass
class SearchResult:
    """Caller-facing result of a search request."""

    success: bool
    message: str
    records: list = field(default_factory=list)
    count: int = 0
    truncated: bool = False
    truncated_count: int = 0
    meta: SearchMeta = field(default_factory=SearchMeta)

    def to_dict(self) -> dict:
        return {
            "records": list(self.records),
            "count": self.count,
            "truncated": self.truncated,
            "truncatedCount": self.truncated_count,
            "success": self.success,
            "message": self.message,
            "meta": {
                "pagesRetrieved": self.meta.pages_retrieved,
                "totalFetched": self.meta.total_fetched,
                "matchedCount": self.meta.matched_count,
                "outputCount": self.meta.output_count,
            },
        }


@dataclass
class MutationDetail:
    """Per-record outcome of a bulk update or delete.

    Attributes:
        id: Record identity.
        success: Whether the write succeeded (always True in a dry run).
        kind: Record kind (delete results only).
        error: Error message when the write failed.
        before: Current values of the fields an update touches.
        after: Values those fields would have after the update.
        summary: Date/amount/place/name of a deleted record.
    """

    id: int
    success: bool
    kind: str | None = None
    error: str | None = None
    before: dict | None = None
    after: dict | None = None
    summary: dict | None = None

    def to_dict(self) -> dict:
        data: dict = {"id": self.id}
        if self.kind is not None:
            data["kind"] = self.kind
        data["success"] = self.success
        for key in ("error", "before", "after", "summary"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class BulkStats:
    target_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    dry_run: bool = False


@dataclass
class BulkResult:
    """Caller-facing result of a bulk update or delete."""

    success: bool
    message: str
    results: list[MutationDetail] = field(default_factory=list)
    stats: BulkStats = field(default_factory=BulkStats)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "results": [detail.to_dict() for detail in self.results],
            "stats": {
                "targetCount": self.stats.target_count,
                "successCount": self.stats.success_count,
                "failureCount": self.stats.failure_count,
                "dryRun": self.stats.dry_run,
            },
        }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class AppConfig:
    """Top-level configuration loaded from ``config.toml``.

    Attributes:
        base_url: Root URL of the remote ledger API.
        access_token_env: Name of the environment variable holding the
            bearer token sent with every request.
        timeout: HTTP timeout in seconds.
        page_size: Records requested per page (at most 100).
        max_pages: Per-sub-window page safety limit.
        days_per_chunk: Span of each fetch sub-window in days.
        fetch_delay_seconds: Pause between page requests.
        write_delay_seconds: Pause between bulk write requests.
    """

    base_url: str = "https://api.zaim.net"
    access_token_env: str = "LEDGER_ACCESS_TOKEN"
    timeout: float = 30.0
    page_size: int = 100
    max_pages: int = 100
    days_per_chunk: int = 31
    fetch_delay_seconds: float = 0.2
    write_delay_seconds: float = 0.2

    def fetch_options(self) -> FetchOptions:
        """Build the :class:`FetchOptions` these settings describe."""
        return FetchOptions(
            page_size=self.page_size,
            max_pages=self.max_pages,
            delay_seconds=self.fetch_delay_seconds,
            days_per_chunk=self.days_per_chunk,
        )
