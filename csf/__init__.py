from .csf_data_functions import DataView
from .csf_exceptions import ConfigurationError, DegenerateTreeError
from .csf_forest_asdict_functions import CausalSurvivalTree
from .csf_forest_functions import Forest, train
from .csf_init_functions import ForestOptions, GenCfg, IntCfg
from .csf_main import CausalSurvivalForest
from .csf_predict_functions import (Prediction, point_estimate, predict,
                                    predict_oob, predictions_to_dataframe)
from .example_data_functions import example_data

__all__ = ["CausalSurvivalForest", "CausalSurvivalTree", "ConfigurationError",
           "DataView", "DegenerateTreeError", "Forest", "ForestOptions",
           "GenCfg", "IntCfg", "Prediction", "example_data", "point_estimate",
           "predict", "predict_oob", "predictions_to_dataframe", "train"]
