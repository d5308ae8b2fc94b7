"""
Token-frequency text categorizer.

A multinomial naive Bayes over lower-cased word tokens with additive
smoothing. Small, deterministic and serialisable, which is all the trainer
needs to version, compare and back up models.
"""

import math
import re
from collections import Counter
from typing import Any

_TOKEN = re.compile(r"[a-z]+")


class KeywordCategorizer:
    def __init__(self, min_token_length: int = 3, smoothing: float = 1.0):
        self.min_token_length = min_token_length
        self.smoothing = smoothing
        self.token_counts: dict[str, Counter] = {}
        self.class_counts: Counter = Counter()

    def tokenize(self, text: str) -> list[str]:
        return [t for t in _TOKEN.findall(str(text).lower()) if len(t) >= self.min_token_length]

    def fit(self, samples: list[tuple[str, str]]) -> "KeywordCategorizer":
        """Add (text, label) samples to the model; calling again keeps learning."""
        for text, label in samples:
            self.class_counts[label] += 1
            self.token_counts.setdefault(label, Counter()).update(self.tokenize(text))
        return self

    @property
    def labels(self) -> list[str]:
        return sorted(self.class_counts)

    @property
    def vocabulary(self) -> set[str]:
        return {token for counts in self.token_counts.values() for token in counts}

    def predict(self, text: str) -> str | None:
        if not self.class_counts:
            return None

        tokens = self.tokenize(text)
        vocab_size = len(self.vocabulary) or 1
        total = sum(self.class_counts.values())

        best_label, best_score = None, -math.inf
        for label in self.labels:
            counts = self.token_counts.get(label, Counter())
            denominator = sum(counts.values()) + self.smoothing * vocab_size
            score = math.log(self.class_counts[label] / total)
            score += sum(math.log((counts[t] + self.smoothing) / denominator) for t in tokens)
            if score > best_score:
                best_label, best_score = label, score
        return best_label

    def evaluate(self, samples: list[tuple[str, str]]) -> dict[str, Any]:
        """Accuracy, macro precision/recall/F1 and a confusion matrix over the given samples."""
        labels = sorted(set(self.labels) | {label for _, label in samples})
        index = {label: i for i, label in enumerate(labels)}
        matrix = [[0] * len(labels) for _ in labels]

        correct = 0
        for text, actual in samples:
            predicted = self.predict(text)
            if predicted == actual:
                correct += 1
            if predicted is not None:
                matrix[index[actual]][index[predicted]] += 1

        precisions, recalls = [], []
        for i in range(len(labels)):
            predicted_i = sum(row[i] for row in matrix)
            actual_i = sum(matrix[i])
            precisions.append(matrix[i][i] / predicted_i if predicted_i else 0.0)
            recalls.append(matrix[i][i] / actual_i if actual_i else 0.0)

        precision = sum(precisions) / len(labels) if labels else 0.0
        recall = sum(recalls) / len(labels) if labels else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        return {
            "accuracy": correct / len(samples) if samples else 0.0,
            "precision": precision,
            "recall": recall,
            "f1_score": f1,
            "labels": labels,
            "confusion_matrix": matrix,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "min_token_length": self.min_token_length,
            "smoothing": self.smoothing,
            "class_counts": dict(sorted(self.class_counts.items())),
            "token_counts": {label: dict(sorted(c.items())) for label, c in sorted(self.token_counts.items())},
        }

    @classmethod
    def from_dict(cls, state: dict[str, Any]) -> "KeywordCategorizer":
        model = cls(state.get("min_token_length", 3), state.get("smoothing", 1.0))
        model.class_counts = Counter(state.get("class_counts", {}))
        model.token_counts = {label: Counter(c) for label, c in state.get("token_counts", {}).items()}
        return model
