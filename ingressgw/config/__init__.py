from .annotations import find_annotation_value
from .features import (
    CanaryConfig,
    CanaryKind,
    FeatureBundle,
    HeaderModConfig,
    MirrorConfig,
    RedirectConfig,
    RedirectKind,
    RewriteConfig,
    TimeoutConfig,
    extract_features,
)
