"""Shared test helpers: HTML builders mimicking tabletki.ua pages, stream
helpers and an in-memory database fixture.

Test modules import the helpers directly (`from conftest import drug_page`).
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Generator, Iterable, List, Sequence, Tuple

import pytest

from drugcrawl.db import get_connection, init_db
from drugcrawl.errors import StreamCancelled
from drugcrawl.pipeline.stream import Stream
from drugcrawl.scraper.models import Drug

BASE = "https://tabletki.ua"


# ---------------------------------------------------------------------------
# Page builders
# ---------------------------------------------------------------------------

def atc_page(children: Sequence[Tuple[str, str]]) -> str:
    """ATC classification page; *children* are ``(href, title)`` pairs."""
    items = "".join(
        f'<li><a href="{href}" title="{title}">{title.split()[0]}</a></li>'
        for href, title in children
    )
    return (
        "<html><body>"
        f'<div id="ctl00_MainContent_ATCPanel"><ul>{items}</ul></div>'
        "</body></html>"
    )


def goods_page(hrefs: Sequence[str]) -> str:
    """ATC category page listing drugs."""
    anchors = "".join(f'<div><a href="{href}">drug</a></div>' for href in hrefs)
    return (
        "<html><body>"
        f'<div id="ctl00_MainContent_GoodsListPanel">{anchors}</div>'
        "</body></html>"
    )


def dosages_page(links: Sequence[Tuple[str, str]]) -> str:
    """Drug page with its dosage selector; *links* are ``(href, text)`` pairs."""
    items = "".join(f'<li><a href="{href}">{text}</a></li>' for href, text in links)
    return (
        "<html><body>"
        f'<div class="search-control-panel"><div><div><ul>{items}</ul></div></div></div>'
        "</body></html>"
    )


def drug_page(name: str, with_table: bool = True) -> str:
    """Drug detail page, optionally without the instruction table."""
    table = ""
    if with_table:
        table = (
            '<div id="ctl00_MainContent_InstructionPanel"><table><tbody>'
            "<tr><td>Дозировка</td><td> 500 мг </td></tr>"
            "<tr><td>Производитель</td><td>Bayer</td></tr>"
            "<tr><td>МНН</td><td>Acetylsalicylic acid</td></tr>"
            "<tr><td>Фармакологическая группа</td><td>Анальгетики</td></tr>"
            "<tr><td>Регистрация</td><td>UA/1234/01/01</td></tr>"
            "<tr><td>Код АТХ</td><td>"
            '<div><b>N02BA01</b> <a href="#"><span>Ацетилсалициловая кислота</span></a></div>'
            '<div><b>B01AC06</b> <a href="#"><span>Антиагреганты</span></a></div>'
            "</td></tr>"
            "</tbody></table></div>"
        )
    return (
        "<html><body>"
        f'<div class="header-panel"><h1> {name} </h1></div>'
        '<div itemprop="description">Перевести на русский язык: Перевести '
        "Показания к применению.</div>"
        f"{table}"
        "</body></html>"
    )


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------

def feed(items: Iterable, maxsize: int = 1) -> Stream:
    """A stream filled by a background producer thread, then closed."""
    stream: Stream = Stream(maxsize=maxsize)

    def produce() -> None:
        try:
            for item in items:
                stream.put(item)
        except StreamCancelled:
            return
        stream.close()

    threading.Thread(target=produce, daemon=True).start()
    return stream


def drain(stream: Stream, timeout: float = 10.0) -> List:
    """Collect *stream* to the end; fail the test instead of hanging forever."""
    out: List = []

    def consume() -> None:
        out.extend(stream)

    t = threading.Thread(target=consume, daemon=True)
    t.start()
    t.join(timeout)
    assert not t.is_alive(), "stream was never closed"
    return out


def make_drugs(n: int) -> List[Drug]:
    return [
        Drug(name=f"Drug {i}", link=f"{BASE}/drug/{i}/", dosage="10 мг", instruction="long text")
        for i in range(n)
    ]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()
