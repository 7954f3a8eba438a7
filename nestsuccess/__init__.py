"""
Nest Success Classifier from GPS Movement Summaries

This module provides tools to infer whether a nesting attempt of a tracked bird
succeeded, using seasonal movement metrics and a random forest classifier.
"""

from .errors import NestSuccessError, MissingLabelColumn, MissingFeature
from .features import FINAL_FEATURES, TUNING_FEATURES, prepare_nesting_summary
from .training import split_by_individual
from .model import NestSuccessForest, tune_hyperparameters
from .evaluation import ConfusionSummary, confusion_summary
from .predict import score_partition
from .pipeline import TrainingResult, train_nest_success

__all__ = [
    'NestSuccessError',
    'MissingLabelColumn',
    'MissingFeature',
    'FINAL_FEATURES',
    'TUNING_FEATURES',
    'prepare_nesting_summary',
    'split_by_individual',
    'NestSuccessForest',
    'tune_hyperparameters',
    'ConfusionSummary',
    'confusion_summary',
    'score_partition',
    'TrainingResult',
    'train_nest_success',
]
