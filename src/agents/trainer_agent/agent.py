import hashlib
import itertools
import json
import math
import re
from collections import Counter
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.agents.base import BaseAgent, TaskHandler, extract_records, require_field
from src.agents.trainer_agent.categorizer import KeywordCategorizer
from src.agents.trainer_agent.models import ModelVersion, TrainerSettings, TrainerTaskType, TrainingSession
from src.core.errors import TaskExecutionError
from src.core.models import AgentName, AgentStatus, LogLevel
from src.core.utils.values import field_value, is_blank, to_number

_VERSION = re.compile(r"_v(\d+)\.(\d+)$")

DEFAULT_PARAMETER_SPACE = {"min_token_length": [2, 3, 4], "smoothing": [0.5, 1.0, 2.0]}

# Training input is accepted from a labeler or reviewer run as well as raw samples.
_SAMPLE_KEYS = ("training_data", "labeled_transactions", "records", "cleaned_data", "rows")


class TrainerAgent(BaseAgent):
    """
    Trains versioned categorizers from labeled records.

    Versions are named `{model_type}_v{major}.{minor}`: train_model bumps the
    major number and fine_tune derives a minor revision from an existing one.
    """

    agent_key = AgentName.TRAINER.value
    display_name = "Trainer Agent"
    task_types = TrainerTaskType
    settings_model = TrainerSettings
    capabilities = [
        "Model training",
        "Fine-tuning",
        "Hyperparameter optimization",
        "Model validation",
        "Feedback processing",
        "Performance monitoring",
    ]

    settings: TrainerSettings

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.model_versions: dict[str, ModelVersion] = {}
        self.training_history: list[TrainingSession] = []

    def _handlers(self) -> dict[Enum, TaskHandler]:
        return {
            TrainerTaskType.TRAIN_MODEL: self.train_model,
            TrainerTaskType.FINE_TUNE: self.fine_tune,
            TrainerTaskType.VALIDATE_MODEL: self.validate_model,
            TrainerTaskType.PROCESS_FEEDBACK: self.process_feedback,
            TrainerTaskType.BACKUP_MODELS: self.backup_models,
            TrainerTaskType.OPTIMIZE_HYPERPARAMETERS: self.optimize_hyperparameters,
        }

    async def train_model(self, data: dict[str, Any]) -> dict[str, Any]:
        model_type = data.get("model_type") or AgentName.LABELER.value
        samples = self._samples(data)
        if len(samples) < 2:
            raise TaskExecutionError("At least 2 labeled samples are required for training")

        self.status = AgentStatus.TRAINING
        self.set_progress(10, f"Training {model_type}")
        self.log(LogLevel.INFO, f"Starting model training for {model_type}", samples=len(samples))

        started = datetime.now(UTC)
        train_set, validation_set = self._split(samples)
        model = self._new_model().fit(train_set)
        self.set_progress(70)
        metrics = model.evaluate(validation_set)

        version = f"{model_type}_v{self._next_major(model_type)}.0"
        session = self._record_session("training", model_type, version, started, len(samples), metrics)
        self._register(version, model_type, model, metrics["accuracy"], len(samples), session.id)

        self.log(
            LogLevel.INFO,
            f"Model training completed for {model_type}",
            version=version,
            final_accuracy=f"{metrics['accuracy'] * 100:.2f}%",
        )
        result = {
            "training_session": session.model_dump(),
            "model_version": version,
            "final_metrics": _headline(metrics),
        }

        interval = self.settings.model_backup_interval
        if interval and len(self.training_history) % interval == 0:
            result["backup"] = await self.backup_models({})
        return result

    async def fine_tune(self, data: dict[str, Any]) -> dict[str, Any]:
        if not self.settings.enable_incremental_learning:
            raise TaskExecutionError("Incremental learning is disabled")

        base_version = require_field(data, "model_version", str)
        base = self._get_version(base_version)
        feedback = self._samples(data, keys=("feedback_data",), target_default="corrected_category")
        if not feedback:
            raise TaskExecutionError("No usable feedback samples provided")

        self.status = AgentStatus.TRAINING
        self.log(LogLevel.INFO, f"Starting fine-tuning for {base_version}", feedback_samples=len(feedback))

        started = datetime.now(UTC)
        model = KeywordCategorizer.from_dict(base.state)
        before = model.evaluate(feedback)
        model.fit(feedback)
        after = model.evaluate(feedback)

        version = self._next_minor(base_version)
        session = self._record_session("fine_tuning", base.model_type, version, started, len(feedback), after)
        self._register(
            version, base.model_type, model, after["accuracy"], base.samples + len(feedback), session.id, base_version
        )

        improvements = [
            {"area": area, "before": round(before[area], 4), "after": round(after[area], 4)}
            for area in data.get("target_improvements") or ["accuracy"]
            if area in after and isinstance(after[area], float)
        ]
        self.log(LogLevel.INFO, "Fine-tuning completed", new_version=version, accuracy=round(after["accuracy"], 4))
        return {
            "fine_tuning_session": session.model_dump(),
            "new_model_version": version,
            "improvements": improvements,
        }

    async def validate_model(self, data: dict[str, Any]) -> dict[str, Any]:
        version = require_field(data, "model_version", str)
        model = KeywordCategorizer.from_dict(self._get_version(version).state)
        samples = self._samples(data, keys=("test_data",))
        if not samples:
            raise TaskExecutionError("No usable test samples provided")

        self.log(LogLevel.INFO, f"Starting model validation for {version}", test_samples=len(samples))
        evaluation = model.evaluate(samples)
        requested = data.get("validation_metrics") or ["accuracy", "precision", "recall", "f1_score"]
        metrics = {name: value for name, value in _headline(evaluation).items() if name in requested}

        recommendations = []
        if evaluation["accuracy"] < self.settings.accuracy_threshold:
            recommendations.append("Model accuracy below threshold - consider retraining")
        if evaluation["precision"] < 0.8:
            recommendations.append("Low precision detected - review false positives")
        if evaluation["recall"] < 0.8:
            recommendations.append("Low recall detected - review false negatives")

        self.log(
            LogLevel.INFO,
            "Model validation completed",
            accuracy=f"{evaluation['accuracy'] * 100:.2f}%",
            recommendations=len(recommendations),
        )
        return {
            "model_version": version,
            "test_samples": len(samples),
            "metrics": metrics,
            "labels": evaluation["labels"],
            "confusion_matrix": evaluation["confusion_matrix"],
            "recommendations": recommendations,
        }

    async def process_feedback(self, data: dict[str, Any]) -> dict[str, Any]:
        entries = require_field(data, "feedback_entries", list)
        model_type = data.get("model_type") or AgentName.LABELER.value
        self.log(LogLevel.INFO, f"Processing feedback for {model_type}", entries=len(entries))

        positive = negative = 0
        categories: Counter = Counter()
        improvement_areas: list[str] = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise TaskExecutionError("Feedback entries must be objects")
            rating = to_number(entry.get("rating")) or 0.0
            if rating >= self.settings.feedback_threshold:
                positive += 1
            else:
                negative += 1
            categories[entry.get("category") or "general"] += 1
            improvement_areas.extend(entry.get("suggestions") or [])

        negative_ratio = negative / len(entries) if entries else 0.0
        training_needed = negative_ratio > self.settings.retrain_ratio
        if training_needed:
            self.log(
                LogLevel.INFO,
                "Feedback analysis indicates retraining needed",
                negative_ratio=f"{negative_ratio * 100:.1f}%",
            )

        return {
            "total_entries": len(entries),
            "positive_count": positive,
            "negative_count": negative,
            "category_breakdown": dict(categories),
            "improvement_areas": improvement_areas,
            "training_needed": training_needed,
        }

    async def backup_models(self, data: dict[str, Any]) -> dict[str, Any]:
        self.log(LogLevel.INFO, "Starting model backup process")
        requested = data.get("model_versions") or list(self.model_versions)

        backed_up = []
        for name in requested:
            version = self.model_versions.get(name)
            if version is None:
                continue
            payload = json.dumps(version.state, sort_keys=True).encode()
            backed_up.append(
                {
                    "version": name,
                    "size_bytes": len(payload),
                    "checksum": hashlib.sha256(payload).hexdigest(),
                    "status": "success",
                }
            )

        total = sum(b["size_bytes"] for b in backed_up)
        self.log(LogLevel.INFO, "Model backup completed", models=len(backed_up), total_size_bytes=total)
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "backed_up_models": backed_up,
            "backup_location": "memory",
            "total_size_bytes": total,
        }

    async def optimize_hyperparameters(self, data: dict[str, Any]) -> dict[str, Any]:
        model_type = data.get("model_type") or AgentName.LABELER.value
        goal = data.get("optimization_goal") or "accuracy"
        if goal not in ("accuracy", "precision", "recall", "f1_score"):
            raise TaskExecutionError(f"Unsupported optimization goal: {goal}")

        samples = self._samples(data)
        if len(samples) < 2:
            raise TaskExecutionError("At least 2 labeled samples are required for optimization")

        space = {**DEFAULT_PARAMETER_SPACE, **(data.get("parameter_space") or {})}
        names = sorted(space)
        train_set, validation_set = self._split(samples)
        self.log(LogLevel.INFO, f"Starting hyperparameter optimization for {model_type}", goal=goal)

        history = []
        best_parameters: dict[str, Any] = {}
        best_score = -1.0
        for values in itertools.product(*(space[name] for name in names)):
            parameters = dict(zip(names, values, strict=True))
            model = KeywordCategorizer(**parameters).fit(train_set)
            score = model.evaluate(validation_set)[goal]
            history.append({"parameters": parameters, "score": round(score, 4)})
            if score > best_score:
                best_parameters, best_score = parameters, score

        await self.update_configuration(best_parameters)
        self.log(
            LogLevel.INFO,
            "Hyperparameter optimization completed",
            best_score=round(best_score, 4),
            iterations=len(history),
        )
        return {
            "model_type": model_type,
            "goal": goal,
            "iterations": len(history),
            "best_parameters": best_parameters,
            "best_score": round(best_score, 4),
            "parameter_history": history,
        }

    def get_model_versions(self) -> list[dict[str, Any]]:
        return [version.model_dump() for version in self.model_versions.values()]

    def get_training_history(self) -> list[dict[str, Any]]:
        return [session.model_dump() for session in self.training_history]

    def _samples(
        self,
        data: dict[str, Any],
        keys: tuple[str, ...] = _SAMPLE_KEYS,
        target_default: str = "category",
    ) -> list[tuple[str, str]]:
        records, _ = extract_records(data, keys)
        text_field = data.get("text_field") or "description"
        target_field = data.get("target_field") or target_default

        samples = []
        for record in records:
            text = field_value(record, text_field)
            label = field_value(record, target_field)
            if target_field != "category" and is_blank(label):
                label = record.get("category")
            if not is_blank(text) and not is_blank(label):
                samples.append((str(text), str(label)))
        return samples

    def _split(self, samples: list[tuple[str, str]]) -> tuple[list[tuple[str, str]], list[tuple[str, str]]]:
        """Hold out the tail of the sample list; tiny sets validate on the training data."""
        held_out = math.ceil(len(samples) * self.settings.validation_split)
        if held_out == 0 or len(samples) - held_out < 2:
            return samples, samples
        return samples[:-held_out], samples[-held_out:]

    def _new_model(self) -> KeywordCategorizer:
        return KeywordCategorizer(self.settings.min_token_length, self.settings.smoothing)

    def _get_version(self, name: str) -> ModelVersion:
        version = self.model_versions.get(name)
        if version is None:
            raise TaskExecutionError(f"Model version {name} not found")
        return version

    def _versions_of(self, model_type: str) -> list[tuple[int, int]]:
        found = []
        for name, version in self.model_versions.items():
            match = _VERSION.search(name)
            if version.model_type == model_type and match:
                found.append((int(match.group(1)), int(match.group(2))))
        return found

    def _next_major(self, model_type: str) -> int:
        return max((major for major, _ in self._versions_of(model_type)), default=0) + 1

    def _next_minor(self, base_version: str) -> str:
        match = _VERSION.search(base_version)
        if not match:
            return f"{base_version}_v1.1"
        prefix, major = base_version[: match.start()], int(match.group(1))
        base_type = self.model_versions[base_version].model_type
        minor = max((mi for ma, mi in self._versions_of(base_type) if ma == major), default=0) + 1
        return f"{prefix}_v{major}.{minor}"

    def _register(
        self,
        name: str,
        model_type: str,
        model: KeywordCategorizer,
        accuracy: float,
        samples: int,
        session_id: str,
        parent: str | None = None,
    ) -> None:
        self.model_versions[name] = ModelVersion(
            version=name,
            model_type=model_type,
            accuracy=round(accuracy, 4),
            samples=samples,
            parent=parent,
            session_id=session_id,
            state=model.to_dict(),
        )

    def _record_session(
        self,
        kind: str,
        model_type: str,
        version: str,
        started: datetime,
        samples: int,
        metrics: dict[str, Any],
    ) -> TrainingSession:
        session = TrainingSession(
            id=f"{kind}_{len(self.training_history) + 1}",
            kind=kind,
            model_type=model_type,
            model_version=version,
            start_time=started,
            end_time=datetime.now(UTC),
            samples=samples,
            metrics=_headline(metrics),
        )
        self.training_history.append(session)
        return session


def _headline(metrics: dict[str, Any]) -> dict[str, float]:
    return {name: round(metrics[name], 4) for name in ("accuracy", "precision", "recall", "f1_score")}
