from typing import Any, Dict, List, Optional, Tuple

import logging

from ingressgw.config.annotations import NGINX_ANNOTATIONS_PREFIX, annotation_key
from ingressgw.config.features import extract_features
from ingressgw.errors import ErrorList, FieldPath
from ingressgw.fetch import IngressObject
from ingressgw.gateway import GatewayResources, HTTPRoute
from ingressgw.gateway.types import BackendRef, PathMatch, RouteMatch, RouteRule
from ingressgw.gateway.skeleton import path_match_type
from ingressgw.merge import Converter, PathEntry

logger = logging.getLogger("ingressgw")

# (path, pathType, service, port)
PathSpec = Tuple[str, str, str, int]


def nginx(annotations: Dict[str, str]) -> Dict[str, str]:
    """
    Prefix short annotation names, so tests can say {"canary": "true"}.
    """

    return {annotation_key(NGINX_ANNOTATIONS_PREFIX, k): v for k, v in annotations.items()}


def make_ingress(name: str, paths: List[PathSpec], host: Optional[str] = "example.com",
                 annotations: Optional[Dict[str, str]] = None, namespace: str = "default",
                 ingress_class: str = "higress") -> IngressObject:
    rule: Dict[str, Any] = {
        "http": {
            "paths": [
                {
                    "path": path,
                    "pathType": path_type,
                    "backend": {"service": {"name": service, "port": {"number": port}}},
                }
                for path, path_type, service, port in paths
            ]
        }
    }

    if host:
        rule["host"] = host

    return IngressObject({
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": nginx(annotations or {}),
        },
        "spec": {
            "ingressClassName": ingress_class,
            "rules": [rule],
        },
    })


def make_entry(path: str, service: str, port: int = 80, annotations: Optional[Dict[str, str]] = None,
               path_type: str = "Prefix", host: str = "example.com") -> PathEntry:
    ingress = make_ingress(f"{service}-ingress", [(path, path_type, service, port)], host=host,
                           annotations=annotations)
    features, errors = extract_features(ingress.annotations)
    assert not errors, errors

    return PathEntry(
        ingress=ingress,
        host=host,
        path_type=path_type,
        path=path,
        backend_ref=BackendRef(name=service, port=port),
        features=features,
        field_path=FieldPath("spec", "rules").index(0),
    )


def make_rule(path: str, backends: List[Tuple[str, int]], path_type: str = "Prefix") -> RouteRule:
    return RouteRule(
        matches=[RouteMatch(path=PathMatch(path_match_type(path_type), path))],
        backend_refs=[BackendRef(name=name, port=port) for name, port in backends],
    )


def make_route(*rules: RouteRule) -> HTTPRoute:
    route = HTTPRoute(namespace="default", name="test-example-com", hostnames=["example.com"])
    route.rules.extend(list(rules))
    return route


def convert(*ingresses: IngressObject) -> Tuple[GatewayResources, ErrorList]:
    return Converter(logger).convert(ingresses)


def only_route(resources: GatewayResources) -> HTTPRoute:
    assert len(resources.routes) == 1, f"expected one HTTPRoute, got {list(resources.routes)}"
    return next(iter(resources.routes.values()))


def backend_weights(rule: RouteRule) -> Dict[str, Optional[int]]:
    return {ref.name: ref.weight for ref in rule.backend_refs}


def path_values(rule: RouteRule) -> List[str]:
    return [m.path.value for m in rule.matches if m.path is not None]
