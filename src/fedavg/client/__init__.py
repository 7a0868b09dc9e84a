"""
Federated averaging client: local training and the round agent.
"""

from .agent import ClientAgent
from .data import generate_synthetic_data
from .trainer import TrainingResult, evaluate_model, train_and_evaluate

__all__ = [
    "ClientAgent",
    "TrainingResult",
    "evaluate_model",
    "generate_synthetic_data",
    "train_and_evaluate",
]
