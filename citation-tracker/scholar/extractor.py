"""
FILE DESCRIPTION: Citation metrics extraction from Scholar profile markup.
KEY FUNCTIONS/CLASSES: MetricsExtractor, run_strategies, parse_number, is_plausible_count

The profile page changes its markup and class names over time and per locale,
so no single selector is trusted. Extraction is an ordered list of pure
strategies (document -> Metrics or None); the first acceptable result wins.
"""

import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from scholar.core import logger
from scholar.errors import CitationCountNotFound, ParsingError
from scholar.models import Metrics

# Calendar years misread as counts when the "Since <year>" column shifts
YEAR_MIN = 1900
YEAR_MAX = 2030
MAX_PLAUSIBLE_COUNT = 1_000_000

# Statistics table, in priority order
TABLE_SELECTORS = (
    "table#gsc_rsb_st",
    "#gsc_rsb_st",
    "table.gsc_rsb_st",
    "#gsc_rsb_cit table",
)

# Value cells of the statistics table, in priority order
CELL_SELECTORS = (
    "td.gsc_rsb_std",
    "#gsc_rsb_st td",
    ".gsc_rsb_std",
    "table.gsc_rsb_st td",
)

FLAT_SCAN_LIMIT = 6
SCAN_MAX_TEXT_LENGTH = 10

NUMERIC_TEXT = re.compile(r"^[\d,\s]*\d[\d,\s]*$")
_SEPARATORS = re.compile(r"[,\s]")
_DIGITS = re.compile(r"\d+")

Strategy = Callable[[BeautifulSoup], Optional[Metrics]]


# === NUMBERS ===

def parse_number(text: str) -> Optional[int]:
    """Strips thousands separators and whitespace, returns the first run of digits."""
    if not text:
        return None
    match = _DIGITS.search(_SEPARATORS.sub("", text))
    return int(match.group(0)) if match else None


def is_plausible_count(value: Optional[int]) -> bool:
    """
    Validation filter applied to every candidate number.
    Rejects years [1900, 2030], negatives and values above 1,000,000. Zero passes.
    """
    if value is None or value < 0 or value > MAX_PLAUSIBLE_COUNT:
        return False
    return not (YEAR_MIN <= value <= YEAR_MAX)


def _cell_text(element) -> str:
    return element.get_text(" ", strip=True)


def _checked(value: Optional[int]) -> Optional[int]:
    return value if is_plausible_count(value) else None


# === STRATEGIES ===

def from_stats_table(doc: BeautifulSoup) -> Optional[Metrics]:
    """Walks the rows of the first statistics table that yields a positive citation count."""
    seen = set()
    for selector in TABLE_SELECTORS:
        table = doc.select_one(selector)
        if table is None or id(table) in seen:
            continue
        seen.add(id(table))
        metrics = _read_stats_table(table)
        logger.debug(f"[PARSE] table selector '{selector}' -> {metrics}", extra={'context': 'extractor'})
        if metrics is not None:
            return metrics
    return None


def _read_stats_table(table) -> Optional[Metrics]:
    citations = None
    h_index = None
    for row in table.find_all("tr"):
        cells = row.find_all(["td", "th"])
        if len(cells) < 2:
            continue
        label = _cell_text(cells[0]).lower()
        # second cell is the "All" column; the third is "Since <year>"
        if "citations" in label and citations is None:
            citations = parse_number(_cell_text(cells[1]))
        elif "h-index" in label and h_index is None:
            h_index = parse_number(_cell_text(cells[1]))

    if citations is None or not is_plausible_count(citations) or citations <= 0:
        return None
    return Metrics(citation_count=citations, h_index=_checked(h_index), strategy="table")


def from_cell_array(doc: BeautifulSoup) -> Optional[Metrics]:
    """
    Ignores table structure. Looks for a cell labelled "citations" and takes the
    cell after it; failing that, the first plausible number among the first
    statistics cells.
    """
    cells = [_cell_text(td) for td in doc.find_all("td")]
    if not cells:
        return None

    citations = _labeled_value(cells, "citations")
    h_index = _labeled_value(cells, "h-index")
    if citations is not None:
        return Metrics(citation_count=citations, h_index=h_index, strategy="cells")

    for text in (_stat_cells(doc) or cells)[:FLAT_SCAN_LIMIT]:
        if not NUMERIC_TEXT.match(text):
            continue
        value = _checked(parse_number(text))
        if value is not None:
            return Metrics(citation_count=value, h_index=h_index, strategy="cells")
    return None


def _labeled_value(cells: Sequence[str], label: str) -> Optional[int]:
    for index, text in enumerate(cells[:-1]):
        if label in text.lower():
            value = _checked(parse_number(cells[index + 1]))
            if value is not None:
                return value
    return None


def _stat_cells(doc: BeautifulSoup) -> List[str]:
    for selector in CELL_SELECTORS:
        found = doc.select(selector)
        if found:
            return [_cell_text(el) for el in found]
    return []


def from_any_element(doc: BeautifulSoup) -> Optional[Metrics]:
    """Last resort: first short, purely numeric element text that passes validation."""
    for element in doc.find_all(True):
        text = _cell_text(element)
        if not text or len(text) >= SCAN_MAX_TEXT_LENGTH or not NUMERIC_TEXT.match(text):
            continue
        value = _checked(parse_number(text))
        # a bare 0 anywhere on the page is noise, not a count
        if value:
            logger.debug(f"[PARSE] scan matched <{element.name}> '{text}'", extra={'context': 'extractor'})
            return Metrics(citation_count=value, h_index=None, strategy="scan")
    return None


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("table", from_stats_table),
    ("cells", from_cell_array),
    ("scan", from_any_element),
)


def run_strategies(strategies: Iterable[Tuple[str, Callable]], document, accept=None):
    """
    FLOW: Calls each strategy in order -> Skips None results and results rejected
    by accept() -> Returns (name, result) of the first acceptable one, or None.
    """
    for name, strategy in strategies:
        result = strategy(document)
        if result is None:
            continue
        if accept is not None and not accept(result):
            logger.debug(f"[PARSE] strategy '{name}' result rejected: {result}", extra={'context': 'extractor'})
            continue
        return name, result
    return None


def _acceptable(metrics: Metrics) -> bool:
    return is_plausible_count(metrics.citation_count)


class MetricsExtractor:
    """
    Turns profile markup into Metrics.
    Invariants:
    - Pure: no network, no storage, no side effects besides debug logging.
    - Exhausting every strategy raises CitationCountNotFound; zero is never a failure marker.
    """

    def __init__(self, strategies: Optional[Sequence[Tuple[str, Strategy]]] = None, parser: str = "html.parser"):
        self._strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES
        self._parser = parser

    def parse_document(self, markup: Union[str, bytes]) -> BeautifulSoup:
        if isinstance(markup, bytes):
            markup = markup.decode("utf-8", errors="replace")
        if not markup or not markup.strip():
            raise ParsingError(detail="empty document")
        try:
            doc = BeautifulSoup(markup, self._parser)
        except ParserRejectedMarkup as e:
            raise ParsingError(detail=str(e)) from e
        if doc.find(True) is None:
            raise ParsingError(detail="document contains no elements")
        return doc

    def extract(self, markup: Union[str, bytes]) -> Metrics:
        doc = self.parse_document(markup)
        logger.debug(f"[PARSE] found {len(doc.find_all('td'))} table cells", extra={'context': 'extractor'})

        matched = run_strategies(self._strategies, doc, accept=_acceptable)
        if matched is None:
            raise CitationCountNotFound()

        name, metrics = matched
        logger.debug(
            f"[PARSE] strategy '{name}' -> citations={metrics.citation_count} h-index={metrics.h_index}",
            extra={'context': 'extractor'},
        )
        return metrics


_default_extractor = MetricsExtractor()


def extract(markup: Union[str, bytes]) -> Metrics:
    return _default_extractor.extract(markup)
