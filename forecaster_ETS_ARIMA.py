#!/usr/bin/env python3
"""
ETS and ARIMA forecasting of a quarterly economic series.

Usage
-----
    python forecaster_ETS_ARIMA.py --help
    python forecaster_ETS_ARIMA.py --series-csv data/gdp_US.csv --value-column gdp \
        --train-end 2021Q1 --horizon 8 --intervals 80,95 --p-max 5 --q-max 5 \
        --metrics-csv results.csv

Modular Structure
-----------------
The code is organized in econ_forecaster_src/ (models, search, forecasting),
backtesting/ (rolling-origin cross-validation), evaluation/ (MASE and the
selection policy), validation/ (input checks) and config/ (YAML defaults).
"""

from econ_forecaster_src.main import main

if __name__ == "__main__":
    raise SystemExit(main())
