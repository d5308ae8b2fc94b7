import re
from collections import Counter
from datetime import date
from enum import Enum
from typing import Any

from src.agents.base import BaseAgent, TaskHandler, extract_records
from src.agents.reviewer_agent.models import (
    QualityAssessment,
    RecordReview,
    ReviewerSettings,
    ReviewerTaskType,
    ReviewIssue,
)
from src.core.models import AgentName, LogLevel
from src.core.utils.values import field_value, is_blank, mean_and_std, parse_datetime, to_number, z_score

_CRITICAL_FIELD = re.compile(r"(^|[_\s])id$|amount|date", re.IGNORECASE)
_EXPENSE_CATEGORIES = {"Food", "Transportation", "Housing"}
_REQUIRED_FIELDS = ["id", "date", "amount"]

# Records are accepted from any upstream stage, newest shape first.
_RECORD_KEYS = ("records", "labeled_transactions", "cleaned_data", "rows")


class ReviewerAgent(BaseAgent):
    """
    Final quality gate of the processing pipeline.

    review_data approves or rejects each record: records with a confidence at
    or above the threshold and no high-severity issue are approved when
    auto_approve is on.
    """

    agent_key = AgentName.REVIEWER.value
    display_name = "Reviewer Agent"
    task_types = ReviewerTaskType
    settings_model = ReviewerSettings
    capabilities = [
        "Data quality assessment",
        "Anomaly detection",
        "Business rule validation",
        "Duplicate detection",
        "Record validation",
        "Quality scoring",
    ]

    settings: ReviewerSettings

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            ReviewerTaskType.REVIEW_DATA: self.review_data,
            ReviewerTaskType.VALIDATE_RECORDS: self.validate_records,
            ReviewerTaskType.DETECT_ANOMALIES: self.detect_anomalies,
            ReviewerTaskType.FLAG_DUPLICATES: self.flag_duplicates,
            ReviewerTaskType.ASSESS_QUALITY: self.assess_quality,
        }

    async def review_data(self, data: dict[str, Any]) -> dict[str, Any]:
        records, headers = extract_records(data, _RECORD_KEYS)
        self.log(LogLevel.INFO, "Starting comprehensive data review", records=len(records), headers=len(headers))

        flagged, approved, rejected = [], [], []
        issues: list[ReviewIssue] = []
        for index, record in enumerate(records):
            review = self.review_record(record, headers)
            if review.flagged:
                flagged.append(
                    {
                        "index": index,
                        "record": record,
                        "issues": [issue.model_dump() for issue in review.issues],
                        "confidence": round(review.confidence, 4),
                    }
                )
                self.log(LogLevel.WARNING, "Record flagged for review", index=index, issues=len(review.issues))
            (approved if review.approved else rejected).append(index)
            issues.extend(review.issues)

        quality_score = _quality_score(len(records), len(flagged), len(approved))
        recommendations = _recommendations(len(records), len(flagged), quality_score, issues)

        self.log(
            LogLevel.INFO,
            "Data review completed",
            flagged=len(flagged),
            approved=len(approved),
            quality_score=quality_score,
        )
        return {
            "total_records": len(records),
            "flagged_records": flagged,
            "approved": approved,
            "rejected": rejected,
            "quality_score": quality_score,
            "issues": [issue.model_dump() for issue in issues],
            "recommendations": recommendations,
        }

    def review_record(self, record: dict[str, Any], headers: list[str]) -> RecordReview:
        review = RecordReview()

        for header in headers:
            if _CRITICAL_FIELD.search(header) and is_blank(record.get(header)):
                review.issues.append(
                    ReviewIssue(
                        type="missing_critical_field",
                        field=header,
                        severity="high",
                        message=f"Missing required field: {header}",
                    )
                )
                review.confidence *= 0.7

        amount = to_number(field_value(record, "amount"))
        if amount is not None and abs(amount) > self.settings.high_value_limit:
            review.issues.append(
                ReviewIssue(
                    type="high_value_transaction",
                    field="amount",
                    severity="medium",
                    message=f"High value transaction: ${abs(amount):,.2f}",
                )
            )

        raw_date = field_value(record, "date")
        if not is_blank(raw_date):
            moment = parse_datetime(raw_date)
            if moment is None:
                review.issues.append(
                    ReviewIssue(type="invalid_date", field="date", severity="high", message="Invalid date format")
                )
                review.confidence *= 0.5
            elif moment.date() > date.today():
                review.issues.append(
                    ReviewIssue(type="future_date", field="date", severity="medium", message="Date is in the future")
                )

        if self.settings.validate_business_rules:
            review.issues.extend(_business_rule_issues(record))

        review.flagged = bool(review.issues)
        has_high = any(issue.severity == "high" for issue in review.issues)
        if self.settings.strict_mode and review.flagged:
            review.approved = False
        elif review.confidence >= self.settings.confidence_threshold and not has_high:
            review.approved = self.settings.auto_approve
        else:
            review.approved = False
        return review

    async def validate_records(self, data: dict[str, Any]) -> dict[str, Any]:
        records, _ = extract_records(data, _RECORD_KEYS)
        self.log(LogLevel.INFO, "Starting record validation", records=len(records))

        valid, invalid = [], []
        for index, record in enumerate(records):
            errors = validate_record(record)
            if errors:
                invalid.append({"index": index, "record": record, "errors": errors})
            else:
                valid.append(index)

        self.log(LogLevel.INFO, "Record validation completed", valid=len(valid), invalid=len(invalid))
        return {"valid": valid, "invalid": invalid, "warnings": []}

    async def detect_anomalies(self, data: dict[str, Any]) -> dict[str, Any]:
        records, _ = extract_records(data, _RECORD_KEYS)
        self.log(LogLevel.INFO, "Starting anomaly detection", records=len(records))

        amounts = [(i, to_number(field_value(r, "amount"))) for i, r in enumerate(records)]
        amounts = [(i, a) for i, a in amounts if a is not None]
        mean, std = mean_and_std([a for _, a in amounts])

        anomalies = []
        for index, amount in amounts:
            score = z_score(amount, mean, std)
            if score > self.settings.anomaly_threshold:
                anomalies.append(
                    {
                        "index": index,
                        "type": "statistical_outlier",
                        "value": amount,
                        "z_score": round(score, 2),
                        "severity": "high" if score > 3 else "medium",
                    }
                )

        for index, record in enumerate(records):
            raw = field_value(record, "date")
            moment = parse_datetime(raw) if isinstance(raw, str) and ("T" in raw or ":" in raw) else None
            # Only timestamps carry an hour; plain dates are not checked.
            if moment and (moment.hour < 6 or moment.hour > 22):
                anomalies.append(
                    {"index": index, "type": "unusual_time", "value": f"{moment.hour}:00", "severity": "low"}
                )

        self.log(LogLevel.INFO, "Anomaly detection completed", anomalies=len(anomalies))
        return {"anomalies": anomalies}

    async def flag_duplicates(self, data: dict[str, Any]) -> dict[str, Any]:
        if not self.settings.flag_duplicates:
            return {"duplicates": []}

        records, _ = extract_records(data, _RECORD_KEYS)
        self.log(LogLevel.INFO, "Starting duplicate detection", records=len(records))

        seen: dict[tuple, int] = {}
        duplicates = []
        for index, record in enumerate(records):
            key = tuple(str(field_value(record, name)) for name in ("date", "amount", "description"))
            if key in seen:
                duplicates.append(
                    {"index": index, "original_index": seen[key], "similarity": 1.0, "type": "exact_duplicate"}
                )
            else:
                seen[key] = index

        self.log(LogLevel.INFO, "Duplicate detection completed", duplicates=len(duplicates))
        return {"duplicates": duplicates}

    async def assess_quality(self, data: dict[str, Any]) -> dict[str, Any]:
        records, _ = extract_records(data, _RECORD_KEYS)
        self.log(LogLevel.INFO, "Starting quality assessment", records=len(records))

        quality = assess(records)
        self.log(LogLevel.INFO, "Quality assessment completed", overall=round(quality.overall, 1))
        return quality.model_dump()


def validate_record(record: dict[str, Any]) -> list[str]:
    errors = [f"Missing required field: {name}" for name in _REQUIRED_FIELDS if is_blank(field_value(record, name))]

    amount = field_value(record, "amount")
    if not is_blank(amount) and to_number(amount) is None:
        errors.append("Amount must be a valid number")

    raw_date = field_value(record, "date")
    if not is_blank(raw_date) and parse_datetime(raw_date) is None:
        errors.append("Invalid date format")
    return errors


def assess(records: list[dict[str, Any]]) -> QualityAssessment:
    """
    Score a record set on four axes, each a percentage.

    completeness: filled fields over all fields
    accuracy: parseable amounts over present amounts
    consistency: records sharing the most common field set
    validity: records passing validate_record
    """
    if not records:
        return QualityAssessment()

    total = sum(len(record) for record in records)
    filled = sum(1 for record in records for value in record.values() if not is_blank(value))
    completeness = filled / total * 100 if total else 0.0

    amounts = [field_value(r, "amount") for r in records]
    amounts = [a for a in amounts if not is_blank(a)]
    accuracy = sum(1 for a in amounts if to_number(a) is not None) / len(amounts) * 100 if amounts else 100.0

    shapes = Counter(frozenset(record) for record in records)
    consistency = shapes.most_common(1)[0][1] / len(records) * 100

    validity = sum(1 for record in records if not validate_record(record)) / len(records) * 100

    overall = (completeness + accuracy + consistency + validity) / 4
    return QualityAssessment(
        completeness=round(completeness, 2),
        accuracy=round(accuracy, 2),
        consistency=round(consistency, 2),
        validity=round(validity, 2),
        overall=round(overall, 2),
    )


def _business_rule_issues(record: dict[str, Any]) -> list[ReviewIssue]:
    issues = []
    category = record.get("category")
    amount = to_number(field_value(record, "amount"))

    if category == "Income" and amount is not None and amount < 0:
        issues.append(
            ReviewIssue(
                type="business_rule_violation",
                field="amount",
                severity="medium",
                message="Income transactions should have positive amounts",
            )
        )
    if category in _EXPENSE_CATEGORIES and amount is not None and amount > 0:
        issues.append(
            ReviewIssue(
                type="business_rule_violation",
                field="amount",
                severity="medium",
                message="Expense transactions should have negative amounts",
            )
        )

    account = field_value(record, "account")
    if not is_blank(account) and not re.fullmatch(r"\d+", str(account).removesuffix(".0")):
        issues.append(
            ReviewIssue(
                type="business_rule_violation",
                field="account",
                severity="low",
                message="Account numbers should be numeric",
            )
        )
    return issues


def _quality_score(total: int, flagged: int, approved: int) -> float:
    if total == 0:
        return 100.0
    score = approved / total * 100 - flagged / total * 20
    return round(max(0.0, min(100.0, score)), 2)


def _recommendations(total: int, flagged: int, quality_score: float, issues: list[ReviewIssue]) -> list[str]:
    recommendations = []
    if flagged > total * 0.1:
        recommendations.append("High number of flagged records detected. Consider reviewing data sources.")
    if quality_score < 70:
        recommendations.append("Quality score is below threshold. Implement additional validation steps.")
    if any(issue.severity == "high" for issue in issues):
        recommendations.append("Critical data quality issues found. Manual review recommended.")
    return recommendations
