"""
Parser Agent

Turns uploaded CSV text, pre-extracted spreadsheet rows and PDF text into a
normalised table of headers, typed rows and inferred column types.
"""

from src.agents.parser_agent.agent import ParserAgent
from src.agents.parser_agent.models import ParsedTable, ParserSettings, ParserTaskType

__all__ = ["ParserAgent", "ParsedTable", "ParserSettings", "ParserTaskType"]
