# econ_forecaster_src/__init__.py

"""
Econ Forecaster - ETS and ARIMA forecasting of quarterly economic series

This package fits two competing families of univariate models to a quarterly
series, searches each family automatically by AICc and compares the chosen
models out of sample by MASE.

Key Components
--------------
- config_utils: Configuration management and CLI override support
- errors: Error and warning taxonomy
- data_utils: CSV loading and train/test split
- transform_utils: Box-Cox transform, inverse and Guerrero lambda estimation
- stationarity_utils: KPSS differencing order and STL seasonal strength
- model_types: ETSSpec / ARIMASpec model specifications and FittedModel
- optim_utils: Iteration-capped optimizer shared by both families
- ets_utils: ETS fitting engine and auto-selector
- arima_utils: ARIMA fitting engine (conditional sum of squares)
- search_utils: Stepwise and grid ARIMA order search
- forecasting_utils: Point forecasts and prediction intervals
- metrics_utils: MASE and supporting accuracy metrics
- diagnostics_utils: Ljung-Box white-noise check and STL decomposition
- parsing_utils, file_utils: CLI parsing and report CSV output
- main: Workflow orchestration and CLI entry point

Usage
-----
    # Command-line usage
    python -m econ_forecaster_src.main --series-csv data/gdp_US.csv --train-end 2021Q1

    # Programmatic usage
    from econ_forecaster_src.main import run_forecast_workflow
"""

__version__ = "1.0.0"
__author__ = "Econ Forecaster Development Team"

from .config_utils import initialize_config, get_config_value
from .errors import (
    DomainError,
    FoldFittingError,
    ForecasterError,
    NonConvergenceError,
    NumericInstabilityWarning,
)
from .model_types import ARIMASpec, ETSSpec, FittedModel
from .transform_utils import TransformSpec, estimate_lambda
from .ets_utils import fit_ets, select_ets
from .arima_utils import fit_arima
from .search_utils import grid_search, stepwise_search
from .forecasting_utils import Forecast, fit_model, forecast

__all__ = [
    "initialize_config",
    "get_config_value",
    "DomainError",
    "FoldFittingError",
    "ForecasterError",
    "NonConvergenceError",
    "NumericInstabilityWarning",
    "ARIMASpec",
    "ETSSpec",
    "FittedModel",
    "TransformSpec",
    "estimate_lambda",
    "fit_ets",
    "select_ets",
    "fit_arima",
    "grid_search",
    "stepwise_search",
    "Forecast",
    "fit_model",
    "forecast",
    "__version__",
    "__author__",
]
