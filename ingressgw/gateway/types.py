from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional

import dataclasses
import enum

from ..fetch.k8sobject import KubernetesGVK


HTTPROUTE_GVK = KubernetesGVK.for_gateway_api("HTTPRoute")
GATEWAY_GVK = KubernetesGVK.for_gateway_api("Gateway")


@enum.unique
class PathMatchType (enum.Enum):
    EXACT = "Exact"
    PATH_PREFIX = "PathPrefix"
    REGULAR_EXPRESSION = "RegularExpression"


@enum.unique
class HeaderMatchType (enum.Enum):
    EXACT = "Exact"
    REGULAR_EXPRESSION = "RegularExpression"


@enum.unique
class PathModifierType (enum.Enum):
    FULL_PATH = "ReplaceFullPath"
    PREFIX_MATCH = "ReplacePrefixMatch"


@enum.unique
class FilterType (enum.Enum):
    REQUEST_HEADER_MODIFIER = "RequestHeaderModifier"
    URL_REWRITE = "URLRewrite"
    REQUEST_MIRROR = "RequestMirror"
    REQUEST_REDIRECT = "RequestRedirect"


def _prune(d: Dict[str, Any]) -> Dict[str, Any]:
    # Gateway API manifests leave unset fields out entirely.
    return {k: v for k, v in d.items() if v is not None and v != [] and v != {}}


@dataclasses.dataclass(frozen=True)
class NamespacedName:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclasses.dataclass
class PathMatch:
    type: Optional[PathMatchType]
    value: str

    def as_dict(self) -> Dict[str, Any]:
        return _prune({"type": self.type.value if self.type else None, "value": self.value})


@dataclasses.dataclass
class HeaderMatch:
    name: str
    value: str
    type: HeaderMatchType = HeaderMatchType.EXACT

    def as_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "name": self.name, "value": self.value}


@dataclasses.dataclass
class RouteMatch:
    path: Optional[PathMatch] = None
    headers: List[HeaderMatch] = dataclasses.field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "path": self.path.as_dict() if self.path else None,
            "headers": [h.as_dict() for h in self.headers],
        })


@dataclasses.dataclass
class BackendRef:
    """
    A reference to the Service (or other backend object) that a rule sends
    traffic to. A weight of None means "unweighted": the implementation
    splits evenly.
    """

    name: str
    port: Optional[int] = None
    weight: Optional[int] = None
    namespace: Optional[str] = None
    group: Optional[str] = None
    kind: Optional[str] = None

    def same_target(self, other: BackendRef) -> bool:
        # Ingress backends carry only a service name and port, so the
        # namespace never takes part in the comparison.
        return self.name == other.name and self.port is not None and self.port == other.port

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "group": self.group,
            "kind": self.kind,
            "name": self.name,
            "namespace": self.namespace,
            "port": self.port,
            "weight": self.weight,
        })


@dataclasses.dataclass
class HTTPHeader:
    name: str
    value: str

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclasses.dataclass
class HeaderModifierFilter:
    add: List[HTTPHeader] = dataclasses.field(default_factory=list)
    set: List[HTTPHeader] = dataclasses.field(default_factory=list)
    remove: List[str] = dataclasses.field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "add": [h.as_dict() for h in self.add],
            "set": [h.as_dict() for h in self.set],
            "remove": list(self.remove),
        })


@dataclasses.dataclass
class PathModifier:
    type: PathModifierType
    value: str

    @classmethod
    def full_path(cls, value: str) -> PathModifier:
        return cls(PathModifierType.FULL_PATH, value)

    @classmethod
    def prefix_match(cls, value: str) -> PathModifier:
        return cls(PathModifierType.PREFIX_MATCH, value)

    def as_dict(self) -> Dict[str, Any]:
        key = "replaceFullPath" if self.type == PathModifierType.FULL_PATH else "replacePrefixMatch"
        return {"type": self.type.value, key: self.value}


@dataclasses.dataclass
class URLRewriteFilter:
    hostname: Optional[str] = None
    path: Optional[PathModifier] = None

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "hostname": self.hostname,
            "path": self.path.as_dict() if self.path else None,
        })


@dataclasses.dataclass
class RequestMirrorFilter:
    backend_ref: BackendRef

    def as_dict(self) -> Dict[str, Any]:
        return {"backendRef": self.backend_ref.as_dict()}


@dataclasses.dataclass
class RequestRedirectFilter:
    scheme: Optional[str] = None
    hostname: Optional[str] = None
    path: Optional[PathModifier] = None
    port: Optional[int] = None
    status_code: Optional[int] = None

    @property
    def is_ssl_redirect(self) -> bool:
        return self.scheme == "https"

    @property
    def full_path(self) -> Optional[str]:
        if self.path is not None and self.path.type == PathModifierType.FULL_PATH:
            return self.path.value

        return None

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "scheme": self.scheme,
            "hostname": self.hostname,
            "path": self.path.as_dict() if self.path else None,
            "port": self.port,
            "statusCode": self.status_code,
        })


@dataclasses.dataclass
class RouteFilter:
    """
    One entry of a rule's filter list. Exactly one of the config fields is
    set, and it's the one named by type.
    """

    type: FilterType
    request_header_modifier: Optional[HeaderModifierFilter] = None
    url_rewrite: Optional[URLRewriteFilter] = None
    request_mirror: Optional[RequestMirrorFilter] = None
    request_redirect: Optional[RequestRedirectFilter] = None

    @classmethod
    def header_modifier(cls, f: HeaderModifierFilter) -> RouteFilter:
        return cls(FilterType.REQUEST_HEADER_MODIFIER, request_header_modifier=f)

    @classmethod
    def rewrite(cls, f: URLRewriteFilter) -> RouteFilter:
        return cls(FilterType.URL_REWRITE, url_rewrite=f)

    @classmethod
    def mirror(cls, f: RequestMirrorFilter) -> RouteFilter:
        return cls(FilterType.REQUEST_MIRROR, request_mirror=f)

    @classmethod
    def redirect(cls, f: RequestRedirectFilter) -> RouteFilter:
        return cls(FilterType.REQUEST_REDIRECT, request_redirect=f)

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "type": self.type.value,
            "requestHeaderModifier": self.request_header_modifier.as_dict() if self.request_header_modifier else None,
            "urlRewrite": self.url_rewrite.as_dict() if self.url_rewrite else None,
            "requestMirror": self.request_mirror.as_dict() if self.request_mirror else None,
            "requestRedirect": self.request_redirect.as_dict() if self.request_redirect else None,
        })


@dataclasses.dataclass
class RouteTimeouts:
    request: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _prune({"request": self.request})


@dataclasses.dataclass(eq=False)
class RouteRule:
    """
    One HTTPRoute rule: what it matches, the filters applied in order, and
    the backends it forwards to. Rules compare by identity, so removing a rule
    from a RuleList never removes a different-but-equal one.
    """

    matches: List[RouteMatch] = dataclasses.field(default_factory=list)
    filters: List[RouteFilter] = dataclasses.field(default_factory=list)
    backend_refs: List[BackendRef] = dataclasses.field(default_factory=list)
    timeouts: Optional[RouteTimeouts] = None

    @property
    def redirect_filters(self) -> List[RequestRedirectFilter]:
        return [f.request_redirect for f in self.filters if f.request_redirect is not None]

    @property
    def has_redirect_filter(self) -> bool:
        return bool(self.redirect_filters)

    @property
    def is_plain(self) -> bool:
        return len(self.backend_refs) == 1 and len(self.matches) == 1 and not self.filters

    def as_dict(self) -> Dict[str, Any]:
        return _prune({
            "matches": [m.as_dict() for m in self.matches],
            "filters": [f.as_dict() for f in self.filters],
            "backendRefs": [b.as_dict() for b in self.backend_refs],
            "timeouts": self.timeouts.as_dict() if self.timeouts else None,
        })


class RuleList:
    """
    The ordered rules of one HTTPRoute. Several handlers mutate the same
    RuleList one after another, so removal is always by rule, never by a
    previously captured index.
    """

    def __init__(self, rules: Optional[List[RouteRule]] = None) -> None:
        self._rules: List[RouteRule] = list(rules or [])

    def __iter__(self) -> Iterator[RouteRule]:
        # Iterate over a snapshot so callers may remove while scanning.
        return iter(list(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, i: int) -> RouteRule:
        return self._rules[i]

    def __contains__(self, rule: object) -> bool:
        return any(r is rule for r in self._rules)

    def __repr__(self) -> str:
        return f"RuleList({self._rules!r})"

    def append(self, rule: RouteRule) -> RouteRule:
        self._rules.append(rule)
        return rule

    def extend(self, rules: List[RouteRule]) -> None:
        self._rules.extend(rules)

    def remove(self, rule: RouteRule) -> bool:
        for i, r in enumerate(self._rules):
            if r is rule:
                del self._rules[i]
                return True

        return False

    def as_list(self) -> List[RouteRule]:
        return list(self._rules)


@dataclasses.dataclass
class ParentRef:
    name: str
    namespace: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _prune({"name": self.name, "namespace": self.namespace})


@dataclasses.dataclass(eq=False)
class HTTPRoute:
    namespace: str
    name: str
    parent_refs: List[ParentRef] = dataclasses.field(default_factory=list)
    hostnames: List[str] = dataclasses.field(default_factory=list)
    rules: RuleList = dataclasses.field(default_factory=RuleList)

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": HTTPROUTE_GVK.api_version,
            "kind": HTTPROUTE_GVK.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": _prune({
                "parentRefs": [p.as_dict() for p in self.parent_refs],
                "hostnames": list(self.hostnames),
                "rules": [r.as_dict() for r in self.rules],
            }),
        }


@dataclasses.dataclass
class Listener:
    name: str
    port: int
    protocol: str
    hostname: Optional[str] = None
    certificate_refs: List[str] = dataclasses.field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        d = _prune({
            "name": self.name,
            "hostname": self.hostname,
            "port": self.port,
            "protocol": self.protocol,
        })

        if self.certificate_refs:
            d["tls"] = {"certificateRefs": [{"name": ref} for ref in self.certificate_refs]}

        return d


@dataclasses.dataclass(eq=False)
class Gateway:
    namespace: str
    name: str
    gateway_class_name: str
    listeners: List[Listener] = dataclasses.field(default_factory=list)

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    def listener(self, name: str) -> Optional[Listener]:
        for listener in self.listeners:
            if listener.name == name:
                return listener

        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": GATEWAY_GVK.api_version,
            "kind": GATEWAY_GVK.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "gatewayClassName": self.gateway_class_name,
                "listeners": [l.as_dict() for l in self.listeners],
            },
        }


@dataclasses.dataclass
class GatewayResources:
    gateways: Dict[NamespacedName, Gateway] = dataclasses.field(default_factory=dict)
    routes: Dict[NamespacedName, HTTPRoute] = dataclasses.field(default_factory=dict)

    def manifests(self) -> List[Dict[str, Any]]:
        return [g.as_dict() for g in self.gateways.values()] + [r.as_dict() for r in self.routes.values()]
