"""XPath extractors: turn a fetched :class:`Document` into links or a :class:`Drug`.

Every function here is pure: it only reads the document it is given.  A query
that matches nothing is never an error; it yields an empty list or an empty
string and extraction carries on with the remaining fields.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urljoin

from lxml import html as lxml_html

from drugcrawl.scraper.models import Document, Drug, Link

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Locators
# ---------------------------------------------------------------------------
ATC_LINKS_XPATH = '//div[contains(@id, "ATCPanel")]/ul/li/a'
DRUG_BASE_LINKS_XPATH = '//div[contains(@id, "GoodsListPanel")]/div/a'
DRUG_LINKS_XPATH = '//div[@class="search-control-panel"]/div/div/ul/li/a'

DRUG_NAME_XPATH = '//div[@class="header-panel"]/h1'
INSTRUCTION_XPATH = '//div[@itemprop="description"]'
INFO_TABLE_XPATH = '//div[contains(@id, "InstructionPanel")]/table'

ALL_DOSAGES_TEXT = "Все дозировки"
_TRANSLATE_CAPTIONS = ("Перевести на русский язык:", "Перевести")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def html_text(base: lxml_html.HtmlElement, xpath: str) -> str:
    """Return the stripped text of the first node matching *xpath*, or ``""``."""
    found = base.xpath(xpath)
    if not found:
        return ""
    node = found[0]
    if isinstance(node, str):
        return node.strip()
    return node.text_content().strip()


def _info_row(table: lxml_html.HtmlElement, label: str) -> str:
    """Value cell next to the label cell containing *label*."""
    return html_text(
        table, f'.//tr/td[contains(text(), "{label}")]/following-sibling::td'
    )


def find_links(doc: Document, xpath: str, name_attr: Optional[str] = None) -> List[Link]:
    """Resolve the ``href`` of every ``<a>`` matching *xpath* against the page URL.

    Site links are protocol-relative (``//tabletki.ua/...``), so joining with
    the document URL gives them its scheme.  The link name is taken from
    *name_attr* when given, otherwise from the anchor text.
    """
    links: List[Link] = []
    for anchor in doc.tree.xpath(xpath):
        href = (anchor.get("href") or "").strip()
        if not href:
            continue
        if name_attr:
            name = (anchor.get(name_attr) or "").strip()
        else:
            name = anchor.text_content().strip()
        links.append(Link(url=urljoin(doc.url, href), name=name))
    return links


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_atc_links(doc: Document) -> List[Link]:
    """Child categories of an ATC classification page."""
    return find_links(doc, ATC_LINKS_XPATH, name_attr="title")


def extract_drug_base_links(doc: Document) -> List[Link]:
    """Drugs listed on an ATC category page."""
    return find_links(doc, DRUG_BASE_LINKS_XPATH)


def extract_drug_links(doc: Document) -> List[Link]:
    """Per-dosage pages of a drug, without the leading "all dosages" entry."""
    links = find_links(doc, DRUG_LINKS_XPATH)
    if len(links) < 2:
        logger.warning("Drug links for %s not found", doc.url)
        return []

    if links[0].name != ALL_DOSAGES_TEXT:
        logger.warning("Unexpected first link %s for %s", links[0].url, doc.url)
    return links[1:]


def extract_instruction(doc: Document) -> str:
    text = html_text(doc.tree, INSTRUCTION_XPATH)
    for caption in _TRANSLATE_CAPTIONS:
        text = text.replace(caption, "", 1)
    return text.strip()


def extract_atc_codes(table: lxml_html.HtmlElement) -> str:
    """ATC codes of the drug as ``"<code> - <title>"`` lines."""
    code_nodes = table.xpath(
        './/tr/td[contains(text(), "Код АТХ")]/following-sibling::td/div'
    )
    codes = [
        f"{html_text(node, './b')} - {html_text(node, './a/span')}"
        for node in code_nodes
    ]
    return "\n".join(codes)


def extract_drug(doc: Document) -> Drug:
    """Build a :class:`Drug` from a drug detail page.

    Pages without the instruction table still produce a record holding the
    name, link and instruction text; the remaining fields stay empty.
    """
    name = html_text(doc.tree, DRUG_NAME_XPATH)
    instruction = extract_instruction(doc)

    tables = doc.tree.xpath(INFO_TABLE_XPATH)
    if not tables:
        return Drug(name=name, link=doc.url, instruction=instruction)

    table = tables[0]
    return Drug(
        name=name,
        link=doc.url,
        dosage=_info_row(table, "Дозировка"),
        manufacture=_info_row(table, "Производитель"),
        inn=_info_row(table, "МНН"),
        pharm_group=_info_row(table, "группа"),
        registration=_info_row(table, "Регистрация"),
        atc_code=extract_atc_codes(table),
        instruction=instruction,
    )
