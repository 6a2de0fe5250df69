"""
SF Street Trees: maintenance-status classification pipeline

This package loads the San Francisco street-trees dataset, cleans it,
explores it visually, and tunes a random forest that predicts whether
a tree is maintained by the Department of Public Works.

Modules:
    config         : Load YAML configuration safely.
    data_loader    : Read the CSV from a URL or path, optionally sampled.
    cleaner        : Binary target, numeric plot size, complete rows.
    splitter       : Seeded stratified split and v-fold plan.
    recipe         : Prep/bake preprocessing steps (pooling, dummies, dates, downsampling).
    model_spec     : Random-forest configuration with tunable mtry / min_n.
    grids          : Space-filling and regular hyperparameter grids.
    hyper_tuner    : Cross-validated grid search on a worker pool.
    model_trainer  : Final fit on the whole training split.
    evaluator      : Test metrics and confusion matrix.
    visualizer     : Exploratory and tuning plots.
    pipeline       : Orchestrates all components.
    utils.logger   : Unified timestamped console logger.
    utils.parallel : Explicit joblib worker pool.
"""

from .config import Config
from .data_loader import DataLoader
from .cleaner import Cleaner
from .splitter import Splitter
from .recipe import Recipe
from .model_spec import RandomForestSpec
from .grids import regular_grid, space_filling_grid
from .hyper_tuner import HyperTuner, TuneResults
from .model_trainer import ModelTrainer
from .evaluator import Evaluator
from .visualizer import Visualizer
from .pipeline import PipelineRunner

__all__ = [
    "Config",
    "DataLoader",
    "Cleaner",
    "Splitter",
    "Recipe",
    "RandomForestSpec",
    "regular_grid",
    "space_filling_grid",
    "HyperTuner",
    "TuneResults",
    "ModelTrainer",
    "Evaluator",
    "Visualizer",
    "PipelineRunner",
]
