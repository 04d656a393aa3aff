import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Set, Union

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Page = Union[bytes, str, BeautifulSoup]
Scope = Union[BeautifulSoup, Tag, Mapping[str, Any]]


# --- Extraction specs

class Css(BaseModel):
    """
    Selects the first element matching a CSS selector.

    mode:
        text: the element's stripped text.
        attr: the value of `attr` on the element.
        next_text: the text node right after the element, for
                   "<span>Label:</span> value" pairs.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["css"] = "css"
    selector: str
    mode: Literal["text", "attr", "next_text"] = "text"
    attr: Optional[str] = None


class JsonKey(BaseModel):
    """Reads a key from a JSON record."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    key: str


FieldSelector = Annotated[Union[Css, JsonKey], Field(discriminator="kind")]


class RecordSource(BaseModel):
    """Where repeated records (e.g. list rows) live on a page."""
    model_config = ConfigDict(frozen=True)

    selector: str
    json_attr: Optional[str] = None # records are a JSON array stored in this attribute
    container: Optional[str] = None # when set, its presence alone means the source exists


class Extraction(BaseModel):
    fields: Dict[str, str] = Field(default_factory=dict)
    missing: Set[str] = Field(default_factory=set)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)


# --- Extractor

class MarkupExtractor:
    """
    Evaluates declarative selector specs against a page.

    Never raises on malformed markup: whatever cannot be matched is reported
    as missing.
    """

    def soup(self, page: Page) -> BeautifulSoup:
        if isinstance(page, BeautifulSoup):
            return page
        if isinstance(page, bytes):
            page = page.decode("utf-8", errors="replace")
        return BeautifulSoup(page, "html.parser")

    def extract(self, page: Union[Page, Scope], spec: Mapping[str, FieldSelector]) -> Extraction:
        scope = page if isinstance(page, (Tag, Mapping)) else self.soup(page)
        result = Extraction()
        for name, selector in spec.items():
            value = self._evaluate(scope, selector)
            if value:
                result.fields[name] = value
            else:
                result.missing.add(name)
        return result

    def extract_records(
        self,
        page: Page,
        source: RecordSource,
        spec: Mapping[str, FieldSelector],
    ) -> Optional[List[Extraction]]:
        """
        Extracts `spec` from every record of `source`.

        Returns None if the record source itself is absent from the page and
        an empty list if it is present but holds no records.
        """
        soup = self.soup(page)
        records = self._records(soup, source)
        if records is None:
            return None
        return [self.extract(record, spec) for record in records]

    def _records(self, soup: BeautifulSoup, source: RecordSource) -> Optional[List[Scope]]:
        if source.container is not None:
            containers = self._safe_select(soup, source.container)
            if not containers:
                logger.debug(f"Record container '{source.container}' not found on page")
                return None
            matches = self._safe_select(containers[0], source.selector)
            if source.json_attr is None:
                return matches
        else:
            matches = self._safe_select(soup, source.selector)
        if not matches:
            logger.debug(f"Record source '{source.selector}' not found on page")
            return None
        if source.json_attr is None:
            return matches

        raw = self._get_attr(matches[0], source.json_attr, default=None)
        if raw is None:
            logger.debug(f"Record source '{source.selector}' has no '{source.json_attr}' attribute")
            return None
        try:
            items = json.loads(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not decode JSON records in '{source.selector}[{source.json_attr}]': {e}")
            return None
        if not isinstance(items, list):
            logger.warning(f"JSON records in '{source.selector}[{source.json_attr}]' are not a list")
            return None
        return [item for item in items if isinstance(item, Mapping)]

    def _evaluate(self, scope: Scope, selector: Union[Css, JsonKey]) -> Optional[str]:
        if isinstance(selector, JsonKey):
            if not isinstance(scope, Mapping):
                return None
            value = scope.get(selector.key)
            if value is None or isinstance(value, (dict, list)):
                return None
            return str(value).strip()

        if isinstance(scope, Mapping):
            return None
        matches = self._safe_select(scope, selector.selector)
        element = matches[0] if matches else None
        if element is None:
            return None
        if selector.mode == "attr":
            return self._get_attr(element, selector.attr or "", default=None)
        if selector.mode == "next_text":
            return self._get_clean_sibling_text(element)
        return self._get_text(element) or None

    # --- Safe bs4 helpers

    def _safe_select(self, parent: Optional[Union[BeautifulSoup, Tag]], selector: str) -> List[Tag]:
        """
        Safely find multiple elements using a CSS selector.
        Returns a list of Tags or an empty list.
        """
        if parent is None:
            return []
        try:
            return parent.select(selector)
        except Exception as e:
            logger.error(f"Error in _safe_select (selector='{selector}'): {e}")
            return []

    def _get_text(self, element: Optional[Tag], default: str = "") -> str:
        """Safely retrieve text from an element."""
        return element.get_text(" ", strip=True) if element else default

    def _get_attr(self, element: Optional[Tag], attr: str, default: Optional[str] = "") -> Optional[str]:
        """Securely retrieve the attribute of an element."""
        if not element:
            return default
        value = element.get(attr, default)
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip() if isinstance(value, str) else value

    def _get_clean_sibling_text(self, node: Optional[Tag]) -> Optional[str]:
        """Gets the stripped text following a label node, up to the next tag."""
        if node is None:
            return None
        sibling = node.next_sibling
        if sibling is None or isinstance(sibling, Tag):
            return None
        text = " ".join(str(sibling).split())
        return text if text else None
