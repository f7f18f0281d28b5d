"""
Трансляция событий AWS в NodeRecord и цепочка custom transformers.
"""

from .mapper import EventMapper
from .transformers import (
    CustomTransformer,
    StaticAttributesTransformer,
    TransformerChain,
    TransformOutcome,
    load_transformers,
)

__all__ = [
    "EventMapper",
    "CustomTransformer",
    "StaticAttributesTransformer",
    "TransformerChain",
    "TransformOutcome",
    "load_transformers",
]
