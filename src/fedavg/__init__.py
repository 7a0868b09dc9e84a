"""
Round-synchronized federated averaging (FedAvg) for a fixed client set.
"""

from .config import FederationConfig, ModelConfig
from .messages import GlobalUpdate, LocalUpdate, decode_message, encode_message
from .model import LinearModel, TrainingSample

__version__ = "1.0.0"

__all__ = [
    "FederationConfig",
    "GlobalUpdate",
    "LinearModel",
    "LocalUpdate",
    "ModelConfig",
    "TrainingSample",
    "decode_message",
    "encode_message",
    "__version__",
]
