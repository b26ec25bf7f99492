from .skeleton import RuleGroup, SkeletonBuilder, get_rule_groups, name_from_host, route_name
from .types import (
    BackendRef,
    Gateway,
    GatewayResources,
    HTTPRoute,
    NamespacedName,
    PathMatch,
    PathMatchType,
    RouteFilter,
    RouteMatch,
    RouteRule,
    RuleList,
)
