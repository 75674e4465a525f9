"""Greedy layer-wise pretraining of stacked restricted Boltzmann machines."""
from rbmstack.src.exceptions import PreconditionViolation, RbmStackError, ResourceExhaustion
from rbmstack.src.model import RbmType
from rbmstack.src.random_pool import RandomStatePool, acquire
from rbmstack.src.stack import train_stack
from rbmstack.src.train import fit_rbm, train_rbm

__all__ = [
    "PreconditionViolation",
    "RbmStackError",
    "ResourceExhaustion",
    "RbmType",
    "RandomStatePool",
    "acquire",
    "train_stack",
    "fit_rbm",
    "train_rbm",
]
