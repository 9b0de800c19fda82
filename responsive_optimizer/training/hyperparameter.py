"""Hyperparameter optimisation utilities using Optuna."""

import logging
from typing import Sequence

import optuna

from responsive_optimizer.config import Config
from responsive_optimizer.training.trainer import ModelTrainer
from responsive_optimizer.types import TrainingData


class OptunaOptimizer:
    """Orchestrates hyperparameter search for the model families using Optuna."""

    def __init__(
        self,
        settings: Config,
        training_data: Sequence[TrainingData],
        model_families: list[str] | None = None,
        trainer: ModelTrainer | None = None,
        logger: logging.Logger | None = None,
    ):
        self.settings = settings
        self.training_data = list(training_data)
        self.model_families = model_families
        self.logger = logger or logging.getLogger(__name__)
        self.trainer = trainer or ModelTrainer(settings, logger=self.logger)
        if self.settings.OPTUNA_DB_DIR is not None:
            self.settings.OPTUNA_DB_DIR.mkdir(exist_ok=True, parents=True)

    def _objective(self, trial, family_name):
        """Mean cross-validated MSE of the trial's parameters; lower is better."""
        params = self.settings.get_search_space(trial, family_name)
        result = self.trainer.cross_validate(
            lambda: self.settings.build_model(family_name, dict(params)),
            self.training_data,
        )
        trial.set_user_attr("mean_accuracy", result.mean_accuracy)
        return result.mean_mse

    def _storage(self, family_name):
        if self.settings.OPTUNA_DB_DIR is None:
            return None
        return f"sqlite:///{self.settings.OPTUNA_DB_DIR}/{family_name}.db"

    def run(self, n_trials: int | None = None):
        """
        Runs the hyperparameter search for every selected model family.

        Studies stored in ``OPTUNA_DB_DIR`` are resumed and only the missing
        trials are run; without a storage directory each study lives in memory.

        Returns:
            list of optuna.study.Study, one per family
        """
        n_trials = n_trials or self.settings.N_TRIALS
        all_studies = []
        for family_name in self.settings.MODEL_FAMILIES:
            if self.model_families and family_name not in self.model_families:
                continue

            sampler = optuna.samplers.TPESampler(seed=self.settings.RANDOM_STATE)
            study = optuna.create_study(
                study_name=family_name,
                storage=self._storage(family_name),
                direction="minimize",
                sampler=sampler,
                load_if_exists=True,
            )

            completed_trials = len(
                [t for t in study.trials if t.state == optuna.trial.TrialState.COMPLETE]
            )
            remaining_trials = n_trials - completed_trials

            if remaining_trials > 0:
                self.logger.info(
                    "Optimising %s - running %s more trials", family_name, remaining_trials
                )
                study.optimize(
                    lambda trial, family=family_name: self._objective(trial, family),
                    n_trials=remaining_trials,
                    show_progress_bar=self.settings.SHOW_PROGRESS,
                )
            else:
                self.logger.info(
                    "Skipping %s - already optimised with %s trials", family_name, completed_trials
                )

            all_studies.append(study)

        return all_studies
