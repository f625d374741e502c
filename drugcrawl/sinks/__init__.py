"""Sinks: where scraped drugs and the ATC tree end up."""

from drugcrawl.sinks.base import RecordSink, TreeSink
from drugcrawl.sinks.database import SqliteSink, SqliteTreeSink
from drugcrawl.sinks.files import CsvSink, JsonTreeSink

__all__ = [
    "RecordSink",
    "TreeSink",
    "CsvSink",
    "JsonTreeSink",
    "SqliteSink",
    "SqliteTreeSink",
]
