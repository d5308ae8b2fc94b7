from enum import Enum
from typing import Any

from src.agents.base import BaseAgent, TaskHandler, extract_records, require_field
from src.agents.cleaner_agent import normalizers
from src.agents.cleaner_agent.models import CleanerSettings, CleanerTaskType, CleaningIssue
from src.core.errors import TaskExecutionError
from src.core.models import AgentName, LogLevel
from src.core.utils.values import is_blank, mean_and_std, to_number, z_score


class CleanerAgent(BaseAgent):
    """Cleans parsed tables field by field and reports every change it makes."""

    agent_key = AgentName.CLEANER.value
    display_name = "Cleaner Agent"
    task_types = CleanerTaskType
    settings_model = CleanerSettings
    capabilities = [
        "Text normalization",
        "Currency standardization",
        "Date validation",
        "Missing value imputation",
        "Outlier detection",
        "Data quality assessment",
    ]

    settings: CleanerSettings

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            CleanerTaskType.CLEAN_DATA: self.clean_data,
            CleanerTaskType.NORMALIZE_TEXT: self.normalize_text,
            CleanerTaskType.STANDARDIZE_CURRENCY: self.standardize_currency,
            CleanerTaskType.VALIDATE_DATES: self.validate_dates,
            CleanerTaskType.DETECT_OUTLIERS: self.detect_outliers,
        }

    async def clean_data(self, data: dict[str, Any]) -> dict[str, Any]:
        rows, headers = extract_records(data, ("rows", "cleaned_data", "records"))
        self.log(LogLevel.INFO, "Starting comprehensive data cleaning", total_rows=len(rows), columns=len(headers))

        original = [dict(row) for row in rows]
        issues: list[CleaningIssue] = []
        changes = 0

        for index, row in enumerate(rows):
            for header in headers:
                value = row.get(header)
                if is_blank(value):
                    continue
                cleaned, found = self._clean_field(header, value)
                for issue, action in found:
                    issues.append(CleaningIssue(row=index, column=header, issue=issue, action=action))
                if cleaned != value:
                    row[header] = cleaned
                    changes += 1

        if self.settings.fill_missing_values != "none":
            rows, filled = normalizers.fill_missing(rows, headers, self.settings.fill_missing_values)
            if filled:
                self.log(
                    LogLevel.INFO, "Filled missing values", filled=filled, strategy=self.settings.fill_missing_values
                )

        if self.settings.remove_invalid_entries:
            kept = []
            for index, row in enumerate(rows):
                if all(is_blank(row.get(header)) for header in headers):
                    issues.append(CleaningIssue(row=index, column="*", issue="Empty record", action="Removed record"))
                else:
                    kept.append(row)
            rows = kept

        if self.settings.outlier_detection:
            issues.extend(self._outlier_issues(rows, headers))

        accuracy = max(0.0, (len(rows) - len(issues)) / len(rows) * 100) if rows else 100.0
        self.log(
            LogLevel.INFO,
            "Data cleaning completed",
            original_rows=len(original),
            cleaned_rows=len(rows),
            changes_applied=changes,
            issues_found=len(issues),
        )

        return {
            "original_data": original,
            "cleaned_data": rows,
            "headers": headers,
            "issues": [issue.model_dump() for issue in issues],
            "stats": {
                "total_records": len(rows),
                "cleaned_records": changes,
                "issues_found": len(issues),
                "accuracy": round(accuracy, 2),
            },
        }

    def _clean_field(self, header: str, value: Any) -> tuple[Any, list[tuple[str, str]]]:
        found: list[tuple[str, str]] = []
        cleaned = value

        if normalizers.is_gender_field(header):
            cleaned = normalizers.normalize_gender(value)
            if cleaned != value:
                found.append(("Gender value variation", "Normalized gender code"))
            return cleaned, found

        if normalizers.is_boolean_field(header):
            flag = normalizers.normalize_boolean(value)
            if flag is not None:
                if flag != value:
                    found.append(("Boolean value variation", "Normalized boolean value"))
                return flag, found

        if self.settings.standardize_currency and normalizers.is_currency_field(header):
            amount = normalizers.standardize_currency_value(value)
            if amount is None:
                found.append(("Unparseable currency value", "Left value unchanged"))
            elif amount != value:
                cleaned = amount
                found.append(("Currency format variation", "Standardized currency format"))
            return cleaned, found

        if self.settings.validate_dates and normalizers.is_date_field(header):
            validated = normalizers.validate_date_value(value)
            if validated != value:
                cleaned = validated
                found.append(("Invalid date format", "Corrected date format" if validated else "Cleared invalid date"))
            return cleaned, found

        if (
            self.settings.normalize_text
            and isinstance(value, str)
            and not normalizers.is_identifier_field(header)
            and to_number(value) is None
        ):
            cleaned = normalizers.normalize_text_value(value)
            if cleaned != value:
                found.append(("Text formatting inconsistency", "Normalized text case and whitespace"))

        return cleaned, found

    def _outlier_issues(self, rows: list[dict[str, Any]], headers: list[str]) -> list[CleaningIssue]:
        issues = []
        for header in headers:
            if normalizers.is_identifier_field(header):
                continue
            numbers = [(i, to_number(row.get(header))) for i, row in enumerate(rows)]
            numbers = [(i, n) for i, n in numbers if n is not None]
            if len(numbers) < 3:
                continue

            mean, std = mean_and_std([n for _, n in numbers])
            for index, number in numbers:
                score = z_score(number, mean, std)
                if score > self.settings.outlier_threshold:
                    issues.append(
                        CleaningIssue(
                            row=index,
                            column=header,
                            issue="Statistical outlier detected",
                            action=f"Value {number} is {score:.2f} standard deviations from mean",
                        )
                    )
        return issues

    async def normalize_text(self, data: dict[str, Any]) -> dict[str, Any]:
        text = require_field(data, "text", str)
        return {"original": text, "normalized": normalizers.normalize_text_value(text)}

    async def standardize_currency(self, data: dict[str, Any]) -> dict[str, Any]:
        value = require_field(data, "value", (str, int, float))
        amount = normalizers.standardize_currency_value(value)
        if amount is None:
            raise TaskExecutionError(f"Cannot parse currency value: {value}")
        return {"original": value, "value": amount}

    async def validate_dates(self, data: dict[str, Any]) -> dict[str, Any]:
        value = require_field(data, "date", str)
        validated = normalizers.validate_date_value(value)
        return {"original": value, "date": validated, "valid": bool(validated)}

    async def detect_outliers(self, data: dict[str, Any]) -> dict[str, Any]:
        values = require_field(data, "values", list)
        numbers = [to_number(v) for v in values]
        if not numbers or any(n is None for n in numbers):
            raise TaskExecutionError("Field values must be a non-empty list of numbers")

        mean, std = mean_and_std(numbers)
        threshold = self.settings.outlier_threshold
        outliers = [
            {"index": index, "value": number, "z_score": round(z_score(number, mean, std), 4)}
            for index, number in enumerate(numbers)
            if z_score(number, mean, std) > threshold
        ]
        self.log(LogLevel.INFO, "Outlier detection completed", values=len(numbers), outliers=len(outliers))
        return {"outliers": outliers, "mean": mean, "std_dev": std, "threshold": threshold}
