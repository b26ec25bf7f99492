from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

import dataclasses
import logging
import re

from ..errors import ErrorList, FieldError, FieldPath
from ..fetch.k8sobject import IngressObject
from .types import (
    BackendRef,
    Gateway,
    GatewayResources,
    HTTPRoute,
    Listener,
    NamespacedName,
    ParentRef,
    PathMatch,
    PathMatchType,
    RouteMatch,
    RouteRule,
)

default_logger = logging.getLogger("ingressgw.gateway")

PATH_TYPE_EXACT = "Exact"
PATH_TYPE_PREFIX = "Prefix"
PATH_TYPE_IMPLEMENTATION_SPECIFIC = "ImplementationSpecific"

HTTP_PORT = 80
HTTPS_PORT = 443


def path_match_type(path_type: str) -> Optional[PathMatchType]:
    """
    The Gateway path match type used when building a match for an Ingress
    path type. ImplementationSpecific paths are regular expressions to the
    controllers these Ingresses were written for.
    """

    if path_type == PATH_TYPE_EXACT:
        return PathMatchType.EXACT
    elif path_type == PATH_TYPE_PREFIX:
        return PathMatchType.PATH_PREFIX
    elif path_type == PATH_TYPE_IMPLEMENTATION_SPECIFIC:
        return PathMatchType.REGULAR_EXPRESSION

    return None


_non_alnum = re.compile(r"[^a-zA-Z0-9]+")
_leading_non_alnum = re.compile(r"^[^a-zA-Z0-9]+")


def name_from_host(host: str) -> str:
    if not host or host == "*":
        return "all-hosts"

    return _leading_non_alnum.sub("", _non_alnum.sub("-", host))


def route_name(group_name: str, host: str) -> str:
    return f"{group_name}-{name_from_host(host)}"


@dataclasses.dataclass
class IngressRule:
    ingress: IngressObject
    index: int
    rule: Dict[str, Any]

    @property
    def paths(self) -> List[Dict[str, Any]]:
        http = self.rule.get("http") or {}
        return http.get("paths") or []

    @property
    def field_path(self) -> FieldPath:
        return FieldPath("spec", "rules").index(self.index)


@dataclasses.dataclass
class RuleGroup:
    """
    All the Ingress rules, across Ingresses, that share a namespace, an
    ingress class and a host. Each RuleGroup becomes exactly one HTTPRoute.
    """

    namespace: str
    name: str
    ingress_class: str
    host: str
    rules: List[IngressRule] = dataclasses.field(default_factory=list)
    ingresses: List[IngressObject] = dataclasses.field(default_factory=list)

    @property
    def route_key(self) -> NamespacedName:
        return NamespacedName(self.namespace, route_name(self.name, self.host))

    def add_ingress(self, ingress: IngressObject) -> None:
        if not any(ing is ingress for ing in self.ingresses):
            self.ingresses.append(ingress)


def get_rule_groups(ingresses: List[IngressObject]) -> Dict[Tuple[str, str, str], RuleGroup]:
    rule_groups: Dict[Tuple[str, str, str], RuleGroup] = {}

    def group_for(ingress: IngressObject, host: str) -> RuleGroup:
        key = (ingress.namespace, ingress.ingress_class, host)
        rg = rule_groups.get(key)

        if rg is None:
            rg = RuleGroup(ingress.namespace, ingress.name, ingress.ingress_class, host)
            rule_groups[key] = rg

        rg.add_ingress(ingress)
        return rg

    for ingress in ingresses:
        for i, rule in enumerate(ingress.rules):
            rg = group_for(ingress, rule.get("host") or "")
            rg.rules.append(IngressRule(ingress, i, rule))

        if not ingress.rules and ingress.default_backend:
            group_for(ingress, "")

    return rule_groups


def to_backend_ref(backend: Dict[str, Any], field_path: FieldPath) -> Tuple[Optional[BackendRef], Optional[FieldError]]:
    service = backend.get("service")

    if service:
        port = service.get("port") or {}

        if port.get("name"):
            return None, FieldError.invalid(field_path.child("service", "port"), "name",
                                            f"named ports not supported: {port['name']}")

        number = port.get("number")

        if number is not None:
            try:
                number = int(number)
            except (TypeError, ValueError):
                return None, FieldError.invalid(field_path.child("service", "port", "number"), number,
                                                "port number must be an integer")

        return BackendRef(name=service.get("name", ""), port=number), None

    resource = backend.get("resource")

    if resource:
        return BackendRef(name=resource.get("name", ""), group=resource.get("apiGroup"),
                          kind=resource.get("kind")), None

    return None, FieldError.invalid(field_path, backend, "backend has neither service nor resource")


class SkeletonBuilder:
    """
    Does the plain Ingress to Gateway API translation, ignoring every
    feature annotation: one HTTPRoute per rule group, one rule per distinct
    (path type, path), with unweighted backends and no filters. Feature
    handlers then refine those routes in place.
    """

    logger: logging.Logger

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else default_logger

    def build(self, rule_groups: Dict[Tuple[str, str, str], RuleGroup]) -> Tuple[GatewayResources, ErrorList]:
        resources = GatewayResources()
        errors: ErrorList = []

        for rg in rule_groups.values():
            route, errs = self.build_route(rg)
            errors.extend(errs)

            if route.key in resources.routes:
                # Two hosts can slug to the same name; keep the first.
                errors.append(FieldError.invalid(FieldPath("metadata", "name"), route.name,
                                                 "duplicate HTTPRoute name"))
                continue

            resources.routes[route.key] = route

            self.add_listeners(resources, rg)

        return resources, errors

    def build_route(self, rg: RuleGroup) -> Tuple[HTTPRoute, ErrorList]:
        errors: ErrorList = []
        key = rg.route_key

        route = HTTPRoute(
            namespace=key.namespace,
            name=key.name,
            parent_refs=[ParentRef(name=rg.ingress_class)],
            hostnames=[rg.host] if rg.host else [],
        )

        rules_by_match: Dict[Tuple[str, str], RouteRule] = {}

        for ir in rg.rules:
            for j, path in enumerate(ir.paths):
                field_path = ir.field_path.child("http", "paths").index(j).child("backend")
                backend_ref, err = to_backend_ref(path.get("backend") or {}, field_path)

                if err is not None:
                    errors.append(err)
                    continue

                path_type = path.get("pathType") or PATH_TYPE_IMPLEMENTATION_SPECIFIC
                value = path.get("path") or "/"
                match_key = (path_type, value)

                rule = rules_by_match.get(match_key)

                if rule is None:
                    rule = RouteRule(matches=[RouteMatch(path=PathMatch(path_match_type(path_type), value))])
                    rules_by_match[match_key] = rule
                    route.rules.append(rule)

                if not any(existing == backend_ref for existing in rule.backend_refs):
                    rule.backend_refs.append(backend_ref)

        for ingress in rg.ingresses:
            if not ingress.default_backend:
                continue

            backend_ref, err = to_backend_ref(ingress.default_backend, FieldPath("spec", "defaultBackend"))

            if err is not None:
                errors.append(err)
                continue

            if not any(not r.matches and backend_ref in r.backend_refs for r in route.rules):
                route.rules.append(RouteRule(backend_refs=[backend_ref]))

        self.logger.debug("built HTTPRoute %s with %d rules", route.key, len(route.rules))

        return route, errors

    def add_listeners(self, resources: GatewayResources, rg: RuleGroup) -> None:
        gw_key = NamespacedName(rg.namespace, rg.ingress_class)
        gateway = resources.gateways.get(gw_key)

        if gateway is None:
            gateway = Gateway(namespace=rg.namespace, name=rg.ingress_class, gateway_class_name=rg.ingress_class)
            resources.gateways[gw_key] = gateway

        slug = name_from_host(rg.host)
        hostname = rg.host or None

        if gateway.listener(f"{slug}-http") is None:
            gateway.listeners.append(Listener(name=f"{slug}-http", hostname=hostname,
                                              port=HTTP_PORT, protocol="HTTP"))

        secrets: List[str] = []

        for ingress in rg.ingresses:
            for tls in ingress.tls:
                secret = tls.get("secretName")

                if secret and rg.host in (tls.get("hosts") or []) and secret not in secrets:
                    secrets.append(secret)

        if secrets:
            listener = gateway.listener(f"{slug}-https")

            if listener is None:
                gateway.listeners.append(Listener(name=f"{slug}-https", hostname=hostname,
                                                  port=HTTPS_PORT, protocol="HTTPS",
                                                  certificate_refs=secrets))
            else:
                listener.certificate_refs.extend(s for s in secrets if s not in listener.certificate_refs)
