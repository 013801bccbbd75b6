"""
Adaptation Classifier

Categorizes training responses with small, dependency-free models:
- K-means clustering (Lloyd's algorithm) with a silhouette score
- Logistic regression by batch gradient descent
- Gini decision trees and a bagged random forest
- Per-series response profiles (slope, fit, variability, momentum)

Randomness (centroid seeding, bootstrap resampling, feature sampling)
comes only from the injected random source, so a seeded source makes
every model reproducible. The module-global `random` generator is never
touched.

Majority votes (tree leaves and forest voting) go to the highest count;
ties go to the label encountered first in input order.
"""

import logging
import math
import random
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from core.config import settings
from core.exceptions import EmptySeriesError, MissingValueError, ValidationError
from core.logging import get_engine_logger
from analytics.constants import TREE_MIN_THRESHOLD_STEPS, TREE_SAMPLES_PER_STEP
from analytics.models import (
    ClusterModel,
    DecisionTree,
    FeatureVector,
    ForestMember,
    LogisticModel,
    TreeLeaf,
    TreeNode,
)
from analytics.series import days_since_start, to_finite_float, to_points
from analytics.trend_analyzer import TrendAnalyzer


RandomSource = Union[random.Random, Callable[[], float]]


def _sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def _euclidean(a: Mapping[str, float], b: Mapping[str, float], keys: Sequence[str]) -> float:
    return math.sqrt(sum((a[key] - b[key]) ** 2 for key in keys))


def _gini(labels: Sequence[float]) -> float:
    total = len(labels)
    if total == 0:
        return 0.0
    return 1.0 - sum((count / total) ** 2 for count in Counter(labels).values())


def _majority(labels: Iterable[float]) -> float:
    return Counter(labels).most_common(1)[0][0]


class AdaptationClassifier:
    """
    Unsupervised and supervised models over feature vectors.

    Args:
        k: number of k-means clusters
        max_iterations: k-means iteration budget
        learning_rate: logistic regression step size
        random_source: random.Random-like object or a zero-argument callable
            returning floats in [0, 1). Defaults to a private generator
            seeded from settings.RANDOM_SEED.
        trend_analyzer: shared TrendAnalyzer
        logger: diagnostics logger
    """

    def __init__(
        self,
        k: Optional[int] = None,
        max_iterations: Optional[int] = None,
        learning_rate: Optional[float] = None,
        random_source: Optional[RandomSource] = None,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.logger = logger or get_engine_logger(__name__)
        self.k = settings.KMEANS_CLUSTERS if k is None else k
        self.max_iterations = settings.KMEANS_MAX_ITERATIONS if max_iterations is None else max_iterations
        self.learning_rate = settings.LOGISTIC_LEARNING_RATE if learning_rate is None else learning_rate
        self.trend_analyzer = trend_analyzer or TrendAnalyzer(self.logger)
        self._random = self._resolve_random(random_source)

        if self.k < 1:
            raise ValidationError(f"k must be >= 1, got {self.k}", field="k")
        if self.max_iterations < 1:
            raise ValidationError(f"max_iterations must be >= 1, got {self.max_iterations}", field="max_iterations")
        if self.learning_rate <= 0:
            raise ValidationError(f"learning_rate must be positive, got {self.learning_rate}", field="learning_rate")

    @staticmethod
    def _resolve_random(source: Optional[RandomSource]) -> Callable[[], float]:
        if source is None:
            return random.Random(settings.RANDOM_SEED).random
        if hasattr(source, "random"):
            return source.random
        if callable(source):
            return source
        raise ValidationError("random_source must be a Random instance or a callable", field="random_source")

    # =========================================================================
    # CLUSTERING
    # =========================================================================

    def run_kmeans(self, dataset: Iterable[Mapping[str, Any]], keys: Sequence[str]) -> ClusterModel:
        """
        Lloyd's k-means over the given numeric keys.

        Centroids start at k distinct randomly chosen records; iteration
        stops at a fixed point or after max_iterations. A cluster that loses
        all its members keeps its previous centroid.
        """
        data = self._normalize_dataset(dataset, keys)
        if self.k > len(data):
            raise ValidationError(
                f"k ({self.k}) cannot exceed the number of records ({len(data)})", field="k"
            )

        centroids = [dict(data[i]) for i in self._sample_indices(len(data), self.k)]
        assignments = [-1] * len(data)
        iterations = 0

        for iteration in range(self.max_iterations):
            iterations = iteration + 1
            new_assignments = [self._closest_centroid(point, centroids, keys) for point in data]
            if new_assignments == assignments:
                self.logger.debug(f"K-means converged after {iteration} iterations")
                break
            assignments = new_assignments
            self._update_centroids(data, assignments, centroids, keys)

        clusters: List[List[FeatureVector]] = [[] for _ in centroids]
        for point, cluster in zip(data, assignments):
            clusters[cluster].append(dict(point))

        silhouette = self._silhouette_score(data, assignments, len(centroids), keys)
        self.logger.info(
            f"K-means: k={self.k} n={len(data)} iterations={iterations} silhouette={silhouette:.3f}"
        )

        return ClusterModel(
            centroids=centroids,
            assignments=assignments,
            clusters=clusters,
            silhouette=silhouette,
            iterations=iterations
        )

    def _closest_centroid(self, point: FeatureVector, centroids: List[FeatureVector], keys: Sequence[str]) -> int:
        best_index = 0
        best_distance = math.inf
        for index, centroid in enumerate(centroids):
            distance = _euclidean(point, centroid, keys)
            if distance < best_distance:
                best_distance = distance
                best_index = index
        return best_index

    def _update_centroids(
        self,
        data: List[FeatureVector],
        assignments: List[int],
        centroids: List[FeatureVector],
        keys: Sequence[str]
    ) -> None:
        for cluster_index, centroid in enumerate(centroids):
            members = [point for point, a in zip(data, assignments) if a == cluster_index]
            if not members:
                continue
            for key in keys:
                centroid[key] = sum(point[key] for point in members) / len(members)

    def _silhouette_score(
        self,
        data: List[FeatureVector],
        assignments: List[int],
        cluster_count: int,
        keys: Sequence[str]
    ) -> float:
        """
        Mean over points of (b - a) / max(a, b).

        a: mean distance to the other members of the point's own cluster
        b: smallest mean distance to the members of any other non-empty cluster
        """
        members = [
            [point for point, a in zip(data, assignments) if a == c]
            for c in range(cluster_count)
        ]

        scores = []
        for point, cluster in zip(data, assignments):
            own = members[cluster]
            # distance to itself is 0, so summing over the whole cluster is safe
            a = sum(_euclidean(point, other, keys) for other in own) / (len(own) - 1) if len(own) > 1 else 0.0

            b_values = [
                sum(_euclidean(point, other, keys) for other in group) / len(group)
                for c, group in enumerate(members)
                if c != cluster and group
            ]
            b = min(b_values) if b_values else 0.0

            if a == 0 and b == 0:
                scores.append(0.0)
            else:
                scores.append((b - a) / max(a, b))

        return sum(scores) / len(scores)

    # =========================================================================
    # LOGISTIC REGRESSION
    # =========================================================================

    def train_logistic_regression(
        self,
        dataset: Iterable[Mapping[str, Any]],
        label_key: str,
        feature_keys: Sequence[str],
        iterations: Optional[int] = None
    ) -> LogisticModel:
        """
        Batch gradient descent on the logistic loss.

        Weights and bias start at zero; each pass moves them by
        learning_rate × mean(prediction error × feature). No regularization
        and no convergence check beyond the iteration budget.
        """
        iterations = settings.LOGISTIC_ITERATIONS if iterations is None else iterations
        data = self._normalize_dataset(dataset, [*feature_keys, label_key])
        weights = [0.0] * len(feature_keys)
        bias = 0.0

        for _ in range(iterations):
            gradient_bias = 0.0
            gradient_weights = [0.0] * len(feature_keys)

            for entry in data:
                linear = sum(w * entry[key] for w, key in zip(weights, feature_keys)) + bias
                error = _sigmoid(linear) - entry[label_key]
                gradient_bias += error
                for index, key in enumerate(feature_keys):
                    gradient_weights[index] += error * entry[key]

            scale = self.learning_rate / len(data)
            bias -= scale * gradient_bias
            weights = [w - scale * g for w, g in zip(weights, gradient_weights)]

        self.logger.debug(f"Logistic regression trained: {iterations} iterations, bias={bias:.4f}")
        return LogisticModel(weights=weights, bias=bias, feature_keys=list(feature_keys))

    def predict_logistic(self, model: LogisticModel, sample: Mapping[str, Any]) -> float:
        """Probability of the positive class for one sample."""
        linear = model.bias
        for weight, key in zip(model.weights, model.feature_keys):
            value = to_finite_float(sample.get(key))
            if value is None:
                raise MissingValueError(key, f"Sample missing feature {key}")
            linear += weight * value
        return _sigmoid(linear)

    # =========================================================================
    # DECISION TREES
    # =========================================================================

    def decision_tree_classifier(
        self,
        dataset: Iterable[Mapping[str, Any]],
        label_key: str,
        feature_keys: Sequence[str],
        depth: Optional[int] = None
    ) -> DecisionTree:
        """
        Recursive binary splitter minimizing weighted Gini impurity.

        Candidate thresholds are evenly spaced between each feature's min and
        max in the current subset. Recursion stops at depth 0, on a pure
        node, or when no split lowers impurity.
        """
        depth = settings.TREE_MAX_DEPTH if depth is None else depth
        if depth < 0:
            raise ValidationError(f"depth must be >= 0, got {depth}", field="depth")
        data = self._normalize_dataset(dataset, [*feature_keys, label_key])
        return self._build_tree(data, list(feature_keys), label_key, depth)

    def _build_tree(
        self,
        data: List[FeatureVector],
        feature_keys: List[str],
        label_key: str,
        depth: int
    ) -> DecisionTree:
        labels = [entry[label_key] for entry in data]
        if depth == 0 or len(set(labels)) == 1:
            return TreeLeaf(prediction=_majority(labels))

        parent_impurity = _gini(labels)
        best_feature = None
        best_threshold = 0.0
        best_impurity = math.inf
        best_left: List[FeatureVector] = []
        best_right: List[FeatureVector] = []

        for key in feature_keys:
            values = [entry[key] for entry in data]
            low, high = min(values), max(values)
            step_count = max(TREE_MIN_THRESHOLD_STEPS, len(values) // TREE_SAMPLES_PER_STEP)
            step = (high - low) / step_count
            if step == 0 or not math.isfinite(step):
                continue

            for i in range(1, step_count):
                threshold = low + i * step
                left = [entry for entry in data if entry[key] <= threshold]
                right = [entry for entry in data if entry[key] > threshold]
                if not left or not right:
                    continue
                impurity = (
                    _gini([e[label_key] for e in left]) * len(left) / len(data)
                    + _gini([e[label_key] for e in right]) * len(right) / len(data)
                )
                if impurity < best_impurity:
                    best_impurity = impurity
                    best_feature = key
                    best_threshold = threshold
                    best_left, best_right = left, right

        if best_feature is None or best_impurity >= parent_impurity:
            return TreeLeaf(prediction=_majority(labels))

        return TreeNode(
            feature=best_feature,
            threshold=best_threshold,
            left=self._build_tree(best_left, feature_keys, label_key, depth - 1),
            right=self._build_tree(best_right, feature_keys, label_key, depth - 1)
        )

    def predict_tree(self, tree: DecisionTree, sample: Mapping[str, Any]) -> float:
        node = tree
        while isinstance(node, TreeNode):
            value = to_finite_float(sample.get(node.feature))
            if value is None:
                raise MissingValueError(node.feature, f"Sample missing feature {node.feature}")
            node = node.left if value <= node.threshold else node.right
        return node.prediction

    # =========================================================================
    # RANDOM FOREST
    # =========================================================================

    def random_forest(
        self,
        dataset: Iterable[Mapping[str, Any]],
        label_key: str,
        feature_keys: Sequence[str],
        trees: Optional[int] = None,
        depth: Optional[int] = None
    ) -> List[ForestMember]:
        """
        Bagged decision trees.

        Each tree gets a bootstrap resample of the records (with replacement,
        same size) and max(1, round(sqrt(|features|))) features sampled
        without replacement.
        """
        trees = settings.FOREST_TREES if trees is None else trees
        if trees < 1:
            raise ValidationError(f"trees must be >= 1, got {trees}", field="trees")
        if not feature_keys:
            raise ValidationError("Random forest requires at least one feature", field="feature_keys")

        data = self._normalize_dataset(dataset, [*feature_keys, label_key])
        subset_size = max(1, round(math.sqrt(len(feature_keys))))

        models: List[ForestMember] = []
        for _ in range(trees):
            bootstrap = [data[self._random_index(len(data))] for _ in range(len(data))]
            features = [feature_keys[i] for i in self._sample_indices(len(feature_keys), subset_size)]
            tree = self.decision_tree_classifier(bootstrap, label_key, features, depth)
            models.append(ForestMember(tree=tree, feature_subset=features))

        self.logger.info(
            f"Random forest: {trees} trees, {subset_size}/{len(feature_keys)} features each, n={len(data)}"
        )
        return models

    def predict_random_forest(self, models: Sequence[ForestMember], sample: Mapping[str, Any]) -> float:
        """Majority vote across the forest's trees."""
        if not models:
            raise ValidationError("Random forest has no trees", field="models")
        return _majority(self.predict_tree(member.tree, sample) for member in models)

    # =========================================================================
    # RESPONSE PROFILES
    # =========================================================================

    def response_profile(self, series: Iterable[Any], alpha: float = 0.3) -> FeatureVector:
        """
        Summarize one athlete's series as a feature vector for clustering.

        slope: per-day regression slope
        r2: fit quality of that slope
        cv: coefficient of variation of the values
        momentum: last smoothed value relative to the series mean, minus 1
        """
        points = to_points(series)
        if not points:
            raise EmptySeriesError("Response profile requires non-empty series")

        values = [p.value for p in points]
        regression = self.trend_analyzer.linear_regression(zip(days_since_start(points), values))
        smoothed = self.trend_analyzer.exponential_moving_average(values, alpha)
        mean_value = sum(values) / len(values)

        return {
            "slope": regression.slope,
            "r2": regression.r2,
            "cv": self.trend_analyzer.coefficient_of_variation(values),
            "momentum": smoothed[-1] / mean_value - 1 if mean_value else 0.0,
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _normalize_dataset(self, dataset: Iterable[Mapping[str, Any]], keys: Sequence[str]) -> List[FeatureVector]:
        records = list(dataset or [])
        if not records:
            raise EmptySeriesError("Dataset must be non-empty")

        normalized: List[FeatureVector] = []
        for entry in records:
            if not isinstance(entry, Mapping):
                raise ValidationError(
                    f"Dataset entries must be mappings, got {type(entry).__name__}", field="dataset"
                )
            vector: Dict[str, float] = {}
            for key in keys:
                value = to_finite_float(entry.get(key))
                if value is None:
                    raise MissingValueError(key)
                vector[key] = value
            normalized.append(vector)
        return normalized

    def _random_index(self, n: int) -> int:
        return min(int(self._random() * n), n - 1)

    def _sample_indices(self, n: int, count: int) -> List[int]:
        """`count` distinct indices from range(n) (partial Fisher-Yates)."""
        pool = list(range(n))
        for i in range(count):
            j = i + self._random_index(n - i)
            pool[i], pool[j] = pool[j], pool[i]
        return pool[:count]
