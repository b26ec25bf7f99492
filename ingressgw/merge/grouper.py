from __future__ import annotations
from typing import Dict, List, Optional, Tuple

import dataclasses
import logging

from ..config.features import FeatureBundle, extract_features
from ..errors import ErrorList, FieldPath, post_errors
from ..fetch.k8sobject import IngressObject, KubernetesObjectKey
from ..gateway.skeleton import PATH_TYPE_IMPLEMENTATION_SPECIFIC, RuleGroup, path_match_type, to_backend_ref
from ..gateway.types import BackendRef, PathMatch, RouteMatch


@dataclasses.dataclass(frozen=True)
class MatchKey:
    """
    Groups path entries that address the same location on a host. Backends
    are deliberately not part of the key.
    """

    path_type: str
    path: str

    def __str__(self) -> str:
        return f"{self.path_type}/{self.path}"


@dataclasses.dataclass
class PathEntry:
    """
    One Ingress path, with the feature configuration of the Ingress it came
    from. Read-only once the grouper has built it.
    """

    ingress: IngressObject
    host: str
    path_type: str
    path: str
    backend_ref: Optional[BackendRef]
    features: FeatureBundle
    field_path: FieldPath

    @property
    def match_key(self) -> MatchKey:
        return MatchKey(self.path_type, self.path)

    @property
    def source(self) -> KubernetesObjectKey:
        return self.ingress.key

    def path_match(self) -> PathMatch:
        return PathMatch(path_match_type(self.path_type), self.path)

    def route_match(self) -> RouteMatch:
        return RouteMatch(path=self.path_match())

    def __str__(self) -> str:
        backend = f"{self.backend_ref.name}:{self.backend_ref.port}" if self.backend_ref else "-"
        return f"{self.source} {self.host or '*'} {self.match_key} -> {backend}"


class FeatureExtractor:
    """
    Extracts each Ingress's FeatureBundle once, no matter how many hosts and
    paths it contributes, so its parse errors are reported once too.
    """

    logger: logging.Logger
    bundles: Dict[KubernetesObjectKey, FeatureBundle]

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger
        self.bundles = {}

    def extract(self, ingress: IngressObject) -> Tuple[FeatureBundle, ErrorList]:
        bundle = self.bundles.get(ingress.key)

        if bundle is not None:
            return bundle, []

        bundle, errors = extract_features(ingress.annotations)
        self.bundles[ingress.key] = bundle

        return bundle, post_errors(self.logger, f"Ingress {ingress.key}", errors)


class PathGrouper:
    logger: logging.Logger
    extractor: FeatureExtractor

    def __init__(self, logger: logging.Logger, extractor: Optional[FeatureExtractor] = None) -> None:
        self.logger = logger
        self.extractor = extractor if extractor is not None else FeatureExtractor(logger)

    def group(self, rg: RuleGroup) -> Tuple[Dict[MatchKey, List[PathEntry]], ErrorList]:
        """
        Collect every path of a rule group under its MatchKey. Groups and the
        entries inside them keep the order they were first seen in.
        """

        groups: Dict[MatchKey, List[PathEntry]] = {}
        errors: ErrorList = []

        for ir in rg.rules:
            bundle, errs = self.extractor.extract(ir.ingress)
            errors.extend(errs)

            for j, path in enumerate(ir.paths):
                field_path = ir.field_path.child("http", "paths").index(j)

                # A backend the skeleton couldn't convert was reported there;
                # the entry still joins its group with no backend.
                backend_ref, _ = to_backend_ref(path.get("backend") or {}, field_path.child("backend"))

                entry = PathEntry(
                    ingress=ir.ingress,
                    host=rg.host,
                    path_type=path.get("pathType") or PATH_TYPE_IMPLEMENTATION_SPECIFIC,
                    path=path.get("path") or "/",
                    backend_ref=backend_ref,
                    features=bundle,
                    field_path=field_path,
                )

                groups.setdefault(entry.match_key, []).append(entry)

        return groups, errors
