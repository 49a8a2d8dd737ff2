"""regtree: presorted, concurrently built regression trees for boosting."""

from .builder import BuildCancelled, TreeBuilder, build_tree
from .config import TreeConfig
from .data import Feature
from .model import RegressionTree, Split
from .utils.checks import ContractError
from .wrapper import RegressionTreeRegressor

__all__ = [
    "BuildCancelled",
    "ContractError",
    "Feature",
    "RegressionTree",
    "RegressionTreeRegressor",
    "Split",
    "TreeBuilder",
    "TreeConfig",
    "build_tree",
]
