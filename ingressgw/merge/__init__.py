from .converter import Converter
from .grouper import FeatureExtractor, MatchKey, PathEntry, PathGrouper
from .handlers import (
    CanaryHandler,
    FeatureHandler,
    HandlerPipeline,
    HeaderModHandler,
    MirrorHandler,
    RewriteHandler,
    TimeoutHandler,
    default_handlers,
)
from .redirect import RedirectHandler
from .weights import WeightAllocator, merge_weighted_backends
