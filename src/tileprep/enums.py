from __future__ import annotations
from enum import Enum


class Split(str, Enum):
    TRAIN = "train"
    DEV = "dev"


class FlipDirection(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    BOTH = "both"


class AspectMode(str, Enum):
    X = "x"
    Y = "y"
    BOTH = "both"
