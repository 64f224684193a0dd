from typing import Any, Dict, Union
from jaxtyping import Array, Float

ScalarFloatArray = Float[Array, ""]
ScalarFloat = Union[float, ScalarFloatArray]

KeyArray = Array

KernelHyperparameters = Dict[str, Any]
"""Named (possibly nested) kernel hyperparameters."""

PyTree = Any
