import csv
import io
import re
from enum import Enum
from typing import Any

from src.agents.base import BaseAgent, TaskHandler, require_field
from src.agents.parser_agent.models import ParsedTable, ParserSettings, ParserTaskType
from src.core.errors import TaskExecutionError
from src.core.models import AgentName, LogLevel
from src.core.utils.values import is_blank, parse_date, to_number

CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]
CURRENCY_SYMBOLS = ("$", "£", "€", "¥")

# Columns in extracted PDF text are separated by tabs or runs of 2+ spaces.
_PDF_COLUMN_SPLIT = re.compile(r"\t+| {2,}")


class ParserAgent(BaseAgent):
    """
    Parses uploaded financial files into a normalised table.

    Every parse_* task returns the same shape (headers, rows keyed by header,
    inferred column types and metadata) so the cleaner can consume it directly.
    """

    agent_key = AgentName.PARSER.value
    display_name = "Parser Agent"
    task_types = ParserTaskType
    settings_model = ParserSettings
    capabilities = [
        "CSV delimiter detection",
        "PDF text block extraction",
        "Excel sheet parsing",
        "Data type inference",
        "Structure analysis",
        "Format validation",
    ]

    settings: ParserSettings

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            ParserTaskType.PARSE_CSV: self.parse_csv,
            ParserTaskType.PARSE_EXCEL: self.parse_excel,
            ParserTaskType.PARSE_PDF: self.parse_pdf,
            ParserTaskType.DETECT_STRUCTURE: self.detect_structure,
        }

    async def parse_csv(self, data: dict[str, Any]) -> dict[str, Any]:
        content = require_field(data, "content", str)
        filename = data.get("filename", "upload.csv")
        self.log(LogLevel.INFO, "Starting CSV parsing", filename=filename)

        lines = [line for line in content.splitlines() if not (self.settings.skip_empty_rows and not line.strip())]
        if not lines:
            raise TaskExecutionError("Empty CSV file")

        delimiter = self._detect_delimiter(lines[0])
        self.log(LogLevel.INFO, "Detected CSV delimiter", delimiter=delimiter)

        records = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))
        table = self._build_table(records, source="csv")
        table.metadata.update({"delimiter": delimiter, "encoding": "UTF-8", "filename": filename})

        self.log(
            LogLevel.INFO,
            "CSV parsing completed",
            rows=len(table.rows),
            columns=len(table.headers),
        )
        return table.model_dump()

    async def parse_excel(self, data: dict[str, Any]) -> dict[str, Any]:
        """Parse spreadsheet rows already extracted by the upload layer, one list of cells per row."""
        sheets = require_field(data, "sheets", dict)
        if not sheets:
            raise TaskExecutionError("Workbook has no sheets")

        sheet_name = data.get("sheet") or next(iter(sheets))
        if sheet_name not in sheets:
            raise TaskExecutionError(f"Sheet {sheet_name} not found")

        self.log(LogLevel.INFO, "Starting Excel parsing", filename=data.get("filename"), sheet=sheet_name)
        records = [[("" if cell is None else str(cell)) for cell in row] for row in sheets[sheet_name]]
        if self.settings.skip_empty_rows:
            records = [row for row in records if any(cell.strip() for cell in row)]

        table = self._build_table(records, source="excel")
        table.metadata.update({"sheet": sheet_name, "sheets": len(sheets), "filename": data.get("filename")})

        self.log(LogLevel.INFO, "Excel parsing completed", rows=len(table.rows), columns=len(table.headers))
        return table.model_dump()

    async def parse_pdf(self, data: dict[str, Any]) -> dict[str, Any]:
        """Extract the first whitespace-aligned table from PDF text."""
        text = require_field(data, "text", str)
        self.log(LogLevel.INFO, "Starting PDF parsing", filename=data.get("filename"))

        records: list[list[str]] = []
        for line in text.splitlines():
            cells = [cell.strip() for cell in _PDF_COLUMN_SPLIT.split(line.strip()) if cell.strip()]
            if len(cells) < 2:
                if records:
                    break  # end of the first table block
                continue
            if records and len(cells) != len(records[0]):
                continue
            records.append(cells)

        if len(records) < 2:
            raise TaskExecutionError("No tabular data found in PDF text")

        table = self._build_table(records, source="pdf")
        table.metadata.update({"tables": 1, "filename": data.get("filename")})

        self.log(LogLevel.INFO, "PDF parsing completed", rows=len(table.rows), columns=len(table.headers))
        return table.model_dump()

    async def detect_structure(self, data: dict[str, Any]) -> dict[str, Any]:
        sample = data.get("sample")
        if not sample or not isinstance(sample, list):
            raise TaskExecutionError("No sample data provided")
        if not all(isinstance(row, dict) for row in sample):
            raise TaskExecutionError("Sample rows must be objects")

        self.log(LogLevel.INFO, "Analyzing data structure", rows=len(sample))
        headers = list(sample[0].keys())
        column_types = self._detect_column_types(sample, headers)

        total_cells = len(sample) * len(headers)
        filled = sum(1 for row in sample for h in headers if not is_blank(row.get(h)))
        fill_ratio = filled / total_cells if total_cells else 0.0

        patterns = {
            "has_headers": bool(headers) and all(to_number(h) is None for h in headers),
            "has_numeric_ids": any("id" in h.lower() and column_types[h] == "numeric" for h in headers),
            "has_dates": "date" in column_types.values(),
            "has_amounts": any(
                any(k in h.lower() for k in ("amount", "price", "balance", "total")) for h in headers
            ),
            "data_quality": "good" if fill_ratio > 0.9 else "fair" if fill_ratio > 0.7 else "poor",
        }

        structure = {
            "row_count": len(sample),
            "column_count": len(headers),
            "column_types": column_types,
            "fill_ratio": round(fill_ratio, 4),
            "patterns": patterns,
            "recommendations": self._recommendations(sample, headers, column_types),
        }
        self.log(LogLevel.INFO, "Structure analysis completed", columns=len(headers))
        return structure

    def _detect_delimiter(self, line: str) -> str:
        if self.settings.csv_delimiter != "auto":
            return self.settings.csv_delimiter

        counts = {delimiter: line.count(delimiter) for delimiter in CANDIDATE_DELIMITERS}
        best = max(CANDIDATE_DELIMITERS, key=lambda d: counts[d])
        return best if counts[best] > 0 else ","

    def _build_table(self, records: list[list[str]], source: str) -> ParsedTable:
        header_index = self.settings.header_row_index
        if len(records) <= header_index:
            raise TaskExecutionError(f"Header row {header_index} is missing")

        headers = [h.strip().strip("'\"") for h in records[header_index]]
        rows = []
        malformed = 0
        for record in records[header_index + 1 :]:
            if len(record) != len(headers):
                malformed += 1
            cells = record + [""] * (len(headers) - len(record))
            rows.append({header: self._convert(cells[i]) for i, header in enumerate(headers)})

        return ParsedTable(
            headers=headers,
            rows=rows,
            column_types=self._detect_column_types(rows, headers),
            metadata={
                "source": source,
                "total_rows": len(rows),
                "total_columns": len(headers),
                "malformed_rows": malformed,
            },
        )

    @staticmethod
    def _convert(raw: str) -> Any:
        value = raw.strip().strip("'\"")
        number = to_number(value)
        return number if number is not None else value

    def _detect_column_types(self, rows: list[dict[str, Any]], headers: list[str]) -> dict[str, str]:
        types: dict[str, str] = {}
        sample = rows[: self.settings.max_rows_to_analyze]

        for header in headers:
            values = [row.get(header) for row in sample if not is_blank(row.get(header))]
            if not values:
                types[header] = "unknown"
                continue

            numeric_ratio = sum(1 for v in values if to_number(v) is not None) / len(values)
            date_ratio = sum(1 for v in values if parse_date(v, self.settings.date_formats)) / len(values)

            if numeric_ratio > 0.8:
                types[header] = "numeric"
            elif date_ratio > 0.8:
                types[header] = "date"
            else:
                types[header] = "text"
        return types

    @staticmethod
    def _recommendations(sample: list[dict[str, Any]], headers: list[str], column_types: dict[str, str]) -> list[str]:
        recommendations = []

        cells = [row.get(h) for row in sample for h in headers]
        if any(isinstance(cell, str) and cell.strip()[:1] in CURRENCY_SYMBOLS for cell in cells):
            recommendations.append("Consider normalizing currency formats")

        date_columns = [h for h, t in column_types.items() if t == "date"]
        for header in date_columns:
            separators = {"/" if "/" in str(row.get(header)) else "-" for row in sample if row.get(header)}
            if len(separators) > 1:
                recommendations.append(f"Validate date formats for consistency in {header}")

        keys = [tuple(str(row.get(h)) for h in headers) for row in sample]
        if len(set(keys)) < len(keys):
            recommendations.append("Check for duplicate entries")

        text_columns = [h for h, t in column_types.items() if t == "text"]
        for header in text_columns:
            styles = {_casing(row[header]) for row in sample if isinstance(row.get(header), str) and row[header]}
            if len(styles) > 1:
                recommendations.append(f"Standardize text casing in {header}")
                break

        return recommendations


def _casing(value: str) -> str:
    if value.isupper():
        return "upper"
    if value.islower():
        return "lower"
    return "mixed"
