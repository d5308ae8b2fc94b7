import re
from collections import Counter
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.agents.base import BaseAgent, TaskHandler, extract_records, require_field
from src.agents.labeler_agent.models import Entity, LabelerSettings, LabelerTaskType, LabelingStats
from src.core.models import AgentName, LogLevel
from src.core.utils.values import field_value, is_blank, mean_and_std, parse_datetime, to_number, z_score

# Fallback rules applied after the configured category mappings.
_RULE_CATEGORIES = [
    (("atm", "withdrawal"), "Cash"),
    (("transfer",), "Transfer"),
    (("fee", "charge"), "Fees"),
    (("investment", "stock"), "Investment"),
]

_SUBCATEGORIES = {
    "Food": [(("restaurant", "dining"), "Dining Out"), (("grocery", "supermarket"), "Groceries")],
    "Transportation": [(("gas", "fuel"), "Fuel"), (("uber", "taxi"), "Rideshare"), (("parking",), "Parking")],
    "Housing": [(("rent",), "Rent"), (("utilities",), "Utilities"), (("mortgage",), "Mortgage")],
}
_SUBCATEGORY_DEFAULTS = {"Food": "Food & Beverage"}

_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE = re.compile(r"\b\d{3}-\d{3}-\d{4}\b|\(\d{3}\)\s?\d{3}-?\d{4}\b")
_AMOUNT = re.compile(r"\$\d+(?:,\d{3})*(?:\.\d{2})?")


class LabelerAgent(BaseAgent):
    """Keyword-driven transaction labeler with confidence scoring."""

    agent_key = AgentName.LABELER.value
    display_name = "Labeler Agent"
    task_types = LabelerTaskType
    settings_model = LabelerSettings
    capabilities = [
        "Transaction classification",
        "Entity extraction",
        "Pattern recognition",
        "Contextual analysis",
        "Anomaly detection",
        "Category mapping",
    ]

    settings: LabelerSettings

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            LabelerTaskType.LABEL_TRANSACTIONS: self.label_transactions,
            LabelerTaskType.CATEGORIZE_DATA: self.categorize_data,
            LabelerTaskType.EXTRACT_ENTITIES: self.extract_entities,
            LabelerTaskType.ANALYZE_PATTERNS: self.analyze_patterns,
        }

    async def label_transactions(self, data: dict[str, Any]) -> dict[str, Any]:
        transactions, headers = extract_records(data, ("transactions", "cleaned_data", "rows"))
        self.log(LogLevel.INFO, "Starting transaction labeling", count=len(transactions))

        labeled_at = datetime.now(UTC).isoformat()
        labeled = []
        for transaction in transactions:
            if not self.settings.enable_auto_labeling and not is_blank(transaction.get("category")):
                labeled.append({**transaction, "labeled_by": "user"})
                continue

            description = str(field_value(transaction, "description") or "")
            category = self.determine_category(description)
            labeled.append(
                {
                    **transaction,
                    "category": category,
                    "subcategory": _subcategory(category, description),
                    "confidence": round(self._confidence(transaction, description, category), 4),
                    "labeled_by": "AI",
                    "labeled_at": labeled_at,
                }
            )

        stats = self._stats(labeled)
        self.log(
            LogLevel.INFO,
            "Transaction labeling completed",
            total_transactions=stats.total_labeled,
            average_confidence=stats.average_confidence,
            categories_used=stats.categories_used,
        )
        return {
            "labeled_transactions": labeled,
            "headers": headers + [h for h in ("category", "subcategory", "confidence") if h not in headers],
            "stats": stats.model_dump(),
        }

    async def categorize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        records, _ = extract_records(data, ("records",))
        field = require_field(data, "field", str)
        self.log(LogLevel.INFO, "Starting data categorization", records=len(records), field=field)

        categorized = []
        for record in records:
            value = record.get(field)
            category = _classify_value(value)
            categorized.append(
                {**record, f"{field}_category": category, f"{field}_confidence": _value_confidence(value, category)}
            )

        self.log(LogLevel.INFO, "Data categorization completed")
        return {"categorized_records": categorized}

    async def extract_entities(self, data: dict[str, Any]) -> dict[str, Any]:
        texts = require_field(data, "text", (list, str))
        if isinstance(texts, str):
            texts = [texts]
        self.log(LogLevel.INFO, "Starting entity extraction", text_count=len(texts))

        entities = [
            {"text": text, "entities": [e.model_dump() for e in _entities_in(str(text))], "processed": True}
            for text in texts
        ]
        self.log(LogLevel.INFO, "Entity extraction completed")
        return {"entities": entities}

    async def analyze_patterns(self, data: dict[str, Any]) -> dict[str, Any]:
        records, _ = extract_records(data, ("records", "labeled_transactions", "rows"))
        self.log(LogLevel.INFO, "Starting pattern analysis", records=len(records))

        patterns = {
            "frequent_categories": _frequent_categories(records),
            "time_patterns": _time_patterns(records),
            "amount_patterns": _amount_patterns(records),
            "anomalies": _amount_anomalies(records),
        }
        self.log(LogLevel.INFO, "Pattern analysis completed", patterns_found=len(patterns))
        return {"patterns": patterns}

    def determine_category(self, description: str) -> str:
        if not description:
            return "Other"

        text = description.lower()
        for category, keywords in self.settings.category_mappings.items():
            if any(keyword in text for keyword in keywords):
                return category

        if self.settings.rule_based_labeling:
            for keywords, category in _RULE_CATEGORIES:
                if any(keyword in text for keyword in keywords):
                    return category
        return "Other"

    def _confidence(self, transaction: dict[str, Any], description: str, category: str) -> float:
        confidence = 0.5
        keywords = self.settings.category_mappings.get(category, [])
        matches = [k for k in keywords if k in description.lower()]
        if matches:
            confidence += 0.3 * (len(matches) / len(keywords))

        if self.settings.use_contextual_analysis:
            amount = abs(to_number(field_value(transaction, "amount")) or 0.0)
            if category == "Income" and amount > 1000:
                confidence += 0.1
            if category == "Housing" and amount > 500:
                confidence += 0.1

        return min(confidence, 1.0)

    def _stats(self, labeled: list[dict[str, Any]]) -> LabelingStats:
        if not labeled:
            return LabelingStats()
        confidences = [float(t.get("confidence") or 0.0) for t in labeled]
        return LabelingStats(
            total_labeled=len(labeled),
            average_confidence=round(sum(confidences) / len(confidences), 4),
            categories_used=len({t.get("category") for t in labeled}),
            high_confidence_count=sum(1 for c in confidences if c > self.settings.confidence_threshold),
        )


def _subcategory(category: str, description: str) -> str:
    text = description.lower()
    for keywords, subcategory in _SUBCATEGORIES.get(category, []):
        if any(keyword in text for keyword in keywords):
            return subcategory
    return _SUBCATEGORY_DEFAULTS.get(category, category)


def _classify_value(value: Any) -> str:
    if is_blank(value):
        return "Empty"
    text = str(value)
    if "@" in text:
        return "Email"
    if re.fullmatch(r"\d{10,}", text):
        return "Phone"
    if re.match(r"\d{4}-\d{2}-\d{2}", text):
        return "Date"
    if re.fullmatch(r"\d+\.?\d*", text):
        return "Numeric"
    if len(text) < 10:
        return "Short Text"
    return "Text"


def _value_confidence(value: Any, category: str) -> float:
    if is_blank(value):
        return 0.0
    return {"Email": 0.95, "Phone": 0.9, "Date": 0.95}.get(category, 0.7)


def _entities_in(text: str) -> list[Entity]:
    entities = [Entity(type="EMAIL", value=m) for m in _EMAIL.findall(text)]
    entities += [Entity(type="PHONE", value=m) for m in _PHONE.findall(text)]
    entities += [Entity(type="AMOUNT", value=m) for m in _AMOUNT.findall(text)]
    return entities


def _frequent_categories(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    counts = Counter(record.get("category") or "Other" for record in records)
    return [{"category": category, "count": count} for category, count in counts.most_common(10)]


def _time_patterns(records: list[dict[str, Any]]) -> dict[str, Any]:
    hours = [0] * 24
    weekdays = [0] * 7
    for record in records:
        moment = parse_datetime(field_value(record, "date"))
        if moment:
            hours[moment.hour] += 1
            weekdays[moment.weekday()] += 1

    return {
        "peak_hour": hours.index(max(hours)),
        "peak_day": weekdays.index(max(weekdays)),
        "hourly_distribution": hours,
        "daily_distribution": weekdays,
    }


def _amounts(records: list[dict[str, Any]]) -> list[tuple[int, float]]:
    amounts = [(i, to_number(field_value(record, "amount"))) for i, record in enumerate(records)]
    return [(i, a) for i, a in amounts if a is not None]


def _amount_patterns(records: list[dict[str, Any]]) -> dict[str, Any]:
    amounts = sorted(a for _, a in _amounts(records))
    if not amounts:
        return {}

    common = Counter(round(a) for a in amounts)
    return {
        "min": amounts[0],
        "max": amounts[-1],
        "median": amounts[len(amounts) // 2],
        "average": sum(amounts) / len(amounts),
        "common_amounts": [{"amount": a, "count": c} for a, c in common.most_common(5) if c > 1],
    }


def _amount_anomalies(records: list[dict[str, Any]], threshold: float = 2.5) -> list[dict[str, Any]]:
    amounts = _amounts(records)
    mean, std = mean_and_std([a for _, a in amounts])
    anomalies = []
    for index, amount in amounts:
        score = z_score(amount, mean, std)
        if score > threshold:
            anomalies.append(
                {"record_index": index, "type": "amount_outlier", "value": amount, "z_score": round(score, 2)}
            )
    return anomalies
