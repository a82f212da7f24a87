"""
Unit Tests for the Classifier and Experiment Pipeline
=====================================================

Author: Sensor Classifier Project Team
License: MIT
"""

import importlib.util

import numpy as np
import pytest

from src.sensor.classifier import (
    ClassifierConfig,
    RandomForestModel,
    evaluate,
)
from src.sensor.dataset import AugmentationConfig
from src.sensor.errors import ConfigurationError, DimensionMismatchError
from src.sensor.features import StateMode
from src.sensor.filters import ImpulseResponse
from src.sensor.pipeline import ExperimentConfig, ExperimentRunner, run_experiment
from src.sensor.statistics import DegeneratePolicy, StatisticKind


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clusters(rng):
    """Two well separated clusters in three dimensions."""
    X = np.vstack([
        rng.normal(0.0, 0.1, size=(20, 3)),
        rng.normal(5.0, 0.1, size=(20, 3)),
    ])
    y = np.array([1.0] * 20 + [2.0] * 20)
    return X, y


@pytest.fixture
def experiment_files(labeled_readings, tone_factory, class_tones, write_dataset, write_answers):
    """Training CSV, test CSV and answer CSV built from class tones."""
    train = write_dataset(
        "train.csv",
        [r.data for r in labeled_readings],
        [r.label for r in labeled_readings],
    )

    test_labels = []
    test_rows = []
    for _ in range(3):
        for label, freq in class_tones.items():
            test_rows.append(tone_factory(freq))
            test_labels.append(label)
    # The label column of the test file is ignored in favour of the answers
    test = write_dataset("test_data.csv", test_rows, [0] * len(test_rows))
    answers = write_answers("result.csv", test_labels)

    return {"train": train, "test": test, "answers": answers, "labels": test_labels}


@pytest.fixture
def experiment_config(experiment_files):
    return ExperimentConfig(
        train_path=str(experiment_files["train"]),
        test_path=str(experiment_files["test"]),
        answer_path=str(experiment_files["answers"]),
        augmentation=AugmentationConfig(enabled=False),
        classifier=ClassifierConfig(n_estimators=20, random_state=0),
    )


# =============================================================================
# Classifier Tests
# =============================================================================


class TestClassifierConfig:
    """Tests for ClassifierConfig."""

    def test_defaults(self):
        config = ClassifierConfig()
        assert config.n_estimators == 50
        assert config.max_depth is None

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            ClassifierConfig(n_estimators=0)
        with pytest.raises(ValueError):
            ClassifierConfig(max_depth=0)


class TestRandomForestModel:
    """Tests for RandomForestModel."""

    def test_fit_predict(self, clusters):
        X, y = clusters
        model = RandomForestModel(ClassifierConfig(n_estimators=10)).fit(X, y)

        assert model.is_fitted
        assert model.predict(np.zeros(3)) == 1.0
        assert model.predict(np.full(3, 5.0)) == 2.0
        assert isinstance(model.predict(np.zeros(3)), float)

    def test_batch_matches_single(self, clusters):
        X, y = clusters
        model = RandomForestModel(ClassifierConfig(n_estimators=10)).fit(X, y)

        batch = model.predict_batch(X)

        np.testing.assert_array_equal(batch, [model.predict(row) for row in X])
        np.testing.assert_array_equal(model.classes, [1.0, 2.0])
        assert model.feature_importances.sum() == pytest.approx(1.0)

    def test_seeded_forest_is_reproducible(self, clusters, rng):
        X, y = clusters
        probe = rng.normal(2.5, 2.0, size=(10, 3))
        first = RandomForestModel(ClassifierConfig(random_state=3)).fit(X, y)
        second = RandomForestModel(ClassifierConfig(random_state=3)).fit(X, y)
        np.testing.assert_array_equal(first.predict_batch(probe), second.predict_batch(probe))

    def test_predict_before_fit(self):
        with pytest.raises(RuntimeError):
            RandomForestModel().predict(np.zeros(3))

    def test_wrong_feature_count(self, clusters):
        X, y = clusters
        model = RandomForestModel(ClassifierConfig(n_estimators=5)).fit(X, y)
        with pytest.raises(DimensionMismatchError):
            model.predict(np.zeros(4))

    def test_fit_validation(self, clusters):
        X, y = clusters
        with pytest.raises(DimensionMismatchError):
            RandomForestModel().fit(X, y[:-1])
        with pytest.raises(ValueError):
            RandomForestModel().fit(np.zeros((0, 3)), np.zeros(0))
        with pytest.raises(ValueError):
            RandomForestModel().fit(np.zeros(10), np.zeros(10))


class TestEvaluate:
    """Tests for evaluate."""

    def test_accuracy_percent(self):
        result = evaluate([1.0, 2.0, 3.0, 1.0], [1.0, 2.0, 1.0, 1.0])

        assert result.accuracy == pytest.approx(75.0)
        assert result.n_correct == 3
        assert result.n_total == 4
        assert result.classes == [1.0, 2.0, 3.0]
        assert result.pairs()[2] == (1.0, 3.0)

    def test_confusion_matrix(self):
        result = evaluate([1.0, 2.0, 3.0, 1.0], [1.0, 2.0, 1.0, 1.0])
        np.testing.assert_array_equal(
            result.confusion,
            [[2, 0, 0],
             [0, 1, 0],
             [1, 0, 0]],
        )
        assert result.to_dict()["confusion_matrix"][2] == [1, 0, 0]

    def test_empty(self):
        result = evaluate([], [])
        assert result.accuracy == 0.0
        assert result.n_total == 0

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            evaluate([1.0, 2.0], [1.0])


# =============================================================================
# Configuration Tests
# =============================================================================


class TestExperimentConfig:
    """Tests for ExperimentConfig."""

    def test_reference_defaults(self):
        config = ExperimentConfig()
        plan = config.build_plan()

        assert len(plan) == 25
        assert plan.feature_names[:5] == [
            "low_crest_factor", "low_skew", "low_kurtosis", "low_std", "low_var",
        ]
        assert config.state_mode == StateMode.ISOLATED
        assert config.degenerate_policy == DegeneratePolicy.RAISE

    def test_statistics_accept_names(self):
        config = ExperimentConfig(statistics=["mean", "Entropy"])
        assert config.statistics == [StatisticKind.MEAN, StatisticKind.ENTROPY]

    def test_bad_cutoffs_fail_at_creation(self):
        with pytest.raises(ConfigurationError):
            ExperimentConfig(bands={"bad": (3000.0, 2000.0)})
        with pytest.raises(ConfigurationError):
            ExperimentConfig(bands={})
        with pytest.raises(ConfigurationError):
            ExperimentConfig(statistics=[])

    def test_from_dict(self):
        config = ExperimentConfig.from_dict({
            "sampling_rate": 16000,
            "bands": {"low": [None, 500.0], "mid": [500.0, 4000.0]},
            "impulse_response": "infinite",
            "statistics": ["std", "max"],
            "state_mode": "shared",
            "degenerate_policy": "propagate",
            "classifier": {"n_estimators": 7},
        })

        assert config.sampling_rate == 16000.0
        assert config.bands["mid"] == (500.0, 4000.0)
        assert config.impulse_response == ImpulseResponse.INFINITE
        assert config.state_mode == StateMode.SHARED
        assert config.degenerate_policy == DegeneratePolicy.PROPAGATE
        assert config.classifier.n_estimators == 7
        assert config.build_plan().feature_names == ["low_std", "low_max", "mid_std", "mid_max"]

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="trees"):
            ExperimentConfig.from_dict({"trees": 10})

    def test_from_dict_rejects_bad_band_format(self):
        with pytest.raises(ConfigurationError):
            ExperimentConfig.from_dict({"bands": {"low": 200.0}})

    def test_yaml_nan_cutoff_rejected(self, tmp_path):
        path = tmp_path / "nan.yaml"
        path.write_text("bands:\n  low: [null, .nan]\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ExperimentConfig.from_yaml(path)

    def test_from_dict_rejects_unknown_enum(self):
        with pytest.raises(ConfigurationError):
            ExperimentConfig.from_dict({"impulse_response": "analog"})

    def test_yaml_round_trip(self, tmp_path):
        config = ExperimentConfig(
            statistics=["mean", "entropy"],
            state_mode=StateMode.SHARED,
            augmentation=AugmentationConfig(seed=9),
        )
        path = tmp_path / "config.yaml"

        config.to_yaml(path)
        loaded = ExperimentConfig.from_yaml(path)

        assert loaded.to_dict() == config.to_dict()

    def test_reference_yaml_matches_defaults(self, project_root_path):
        loaded = ExperimentConfig.from_yaml(project_root_path / "configs" / "reference.yaml")
        assert loaded.to_dict() == ExperimentConfig().to_dict()


# =============================================================================
# Runner Tests
# =============================================================================


@pytest.mark.integration
class TestExperimentRunner:
    """End-to-end runs on synthetic CSV files."""

    def test_run_separable_tones(self, experiment_config, experiment_files):
        result = ExperimentRunner(experiment_config).run()

        assert result.succeeded, result.error
        assert result.n_train == 30
        assert len(result.feature_names) == 25
        assert result.evaluation.n_total == 9
        np.testing.assert_array_equal(result.evaluation.expected, experiment_files["labels"])
        assert result.evaluation.accuracy >= 90.0

    def test_run_with_augmentation(self, experiment_config):
        experiment_config.augmentation = AugmentationConfig(seed=1)
        result = ExperimentRunner(experiment_config).run()

        assert result.succeeded, result.error
        assert 0.0 <= result.evaluation.accuracy <= 100.0

    def test_shared_state_mode_runs(self, experiment_config):
        experiment_config.state_mode = StateMode.SHARED
        result = ExperimentRunner(experiment_config).run()
        assert result.succeeded, result.error

    def test_failing_test_set_does_not_stop_others(
        self, experiment_config, experiment_files, write_answers
    ):
        short_answers = write_answers("short.csv", [1.0, 2.0])
        runner = ExperimentRunner(experiment_config)

        results = runner.run_many([
            (experiment_files["test"], short_answers),
            (experiment_files["test"], experiment_files["answers"]),
        ])

        assert not results[0].succeeded
        assert "does not match" in results[0].error
        assert results[1].succeeded

    def test_training_failure_marks_every_result(self, experiment_config, experiment_files):
        experiment_config.train_path = str(experiment_files["train"].parent / "missing.csv")

        results = ExperimentRunner(experiment_config).run_many([
            (experiment_files["test"], experiment_files["answers"]),
            (experiment_files["test"], experiment_files["answers"]),
        ])

        assert len(results) == 2
        assert all(r.error.startswith("training failed") for r in results)

    def test_predict_requires_training(self, experiment_config, labeled_readings):
        with pytest.raises(RuntimeError):
            ExperimentRunner(experiment_config).predict(labeled_readings)

    def test_run_experiment_from_yaml(self, experiment_config, tmp_path):
        path = tmp_path / "experiment.yaml"
        experiment_config.to_yaml(path)

        result = run_experiment(path)

        assert result.succeeded, result.error


# =============================================================================
# Command-line Tests
# =============================================================================


def _load_script(project_root_path):
    path = project_root_path / "scripts" / "run_experiment.py"
    spec = importlib.util.spec_from_file_location("run_experiment", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.integration
class TestCommandLine:
    """Tests for scripts/run_experiment.py."""

    def test_main_prints_report(self, project_root_path, experiment_files, monkeypatch, capsys):
        script = _load_script(project_root_path)
        monkeypatch.setattr("sys.argv", [
            "run_experiment.py",
            "--train", str(experiment_files["train"]),
            "--test", str(experiment_files["test"]),
            "--answers", str(experiment_files["answers"]),
            "--trees", "10",
            "--no-augment",
        ])

        assert script.main() == 0

        out = capsys.readouterr().out
        assert out.count("Prediction result:") == 9
        assert "Accuracy" in out

    def test_main_reports_failure(self, project_root_path, experiment_files, monkeypatch):
        script = _load_script(project_root_path)
        monkeypatch.setattr("sys.argv", [
            "run_experiment.py",
            "--train", str(experiment_files["train"].parent / "missing.csv"),
        ])
        assert script.main() == 1

    def test_main_rejects_malformed_config(self, project_root_path, temp_data_dir, monkeypatch):
        path = temp_data_dir / "broken.yaml"
        path.write_text("bands: [unclosed\n", encoding="utf-8")
        script = _load_script(project_root_path)
        monkeypatch.setattr("sys.argv", ["run_experiment.py", "--config", str(path)])

        assert script.main() == 1
