from typing import List, Optional

import dataclasses
import logging

from ..gateway.skeleton import PATH_TYPE_EXACT, PATH_TYPE_PREFIX
from ..gateway.types import BackendRef, HTTPRoute, PathMatchType, RouteFilter, RouteMatch, RouteRule
from .grouper import PathEntry

logger = logging.getLogger("ingressgw.merge")


########
# Matching


def is_path_match(match: RouteMatch, entry: PathEntry) -> bool:
    """
    Strict match: the path must be equal, and only Exact/Exact and
    Prefix/PathPrefix pairs count. Anything else, ImplementationSpecific
    included, never matches.
    """

    if match.path is None or match.path.type is None:
        return False

    if match.path.value != entry.path:
        return False

    if match.path.type == PathMatchType.EXACT:
        return entry.path_type == PATH_TYPE_EXACT
    elif match.path.type == PathMatchType.PATH_PREFIX:
        return entry.path_type == PATH_TYPE_PREFIX

    return False


def is_same_path(match: RouteMatch, entry: PathEntry) -> bool:
    # Looser than is_path_match: compares against the match type we would
    # have generated for the entry, so ImplementationSpecific paths match
    # their RegularExpression rules.
    path_match = entry.path_match()

    return match.path is not None and match.path.value == path_match.value and match.path.type == path_match.type


def carries_backend(backend_refs: List[BackendRef], entry: PathEntry) -> bool:
    if entry.backend_ref is None:
        return False

    return any(ref.same_target(entry.backend_ref) for ref in backend_refs)


def find_sole_backend_rule(route: HTTPRoute, entry: PathEntry) -> Optional[RouteRule]:
    """
    Return the rule that serves exactly this entry's path with this entry's
    backend as its only backend, or None. Such a rule can take new filters
    or matches without affecting any other backend.
    """

    for rule in route.rules:
        if len(rule.backend_refs) != 1:
            continue

        if any(is_path_match(match, entry) for match in rule.matches) and carries_backend(rule.backend_refs, entry):
            return rule

    return None


def find_claimed_rule(route: HTTPRoute, entry: PathEntry) -> Optional[RouteRule]:
    """
    Return the rule an earlier claim_rule built for this entry: a single
    match on the entry's own generated path, the entry's backend alone, and
    at least one filter. Unlike find_sole_backend_rule this finds
    ImplementationSpecific paths too.
    """

    for rule in route.rules:
        if len(rule.backend_refs) != 1 or len(rule.matches) != 1 or not rule.filters:
            continue

        if is_same_path(rule.matches[0], entry) and carries_backend(rule.backend_refs, entry):
            return rule

    return None


def find_rule_by_path(route: HTTPRoute, entry: PathEntry) -> Optional[RouteRule]:
    """
    Return the first rule matching this entry's path that carries this
    entry's backend, however many other backends it has.
    """

    for rule in route.rules:
        if any(is_path_match(match, entry) for match in rule.matches) and carries_backend(rule.backend_refs, entry):
            return rule

    return None


########
# Mutation


def remove_backend_ref(route: HTTPRoute, entry: PathEntry) -> bool:
    """
    Remove this entry's backend from the first rule that serves it on this
    path. A plain rule (one match, one backend, no filters) goes away
    entirely; otherwise only the one backend reference is dropped.

    Returns True if anything was removed.
    """

    if entry.backend_ref is None:
        return False

    for rule in route.rules:
        if not rule.matches:
            continue

        if not any(is_same_path(match, entry) for match in rule.matches):
            continue

        for ref in rule.backend_refs:
            if not ref.same_target(entry.backend_ref):
                continue

            if rule.is_plain:
                route.rules.remove(rule)
                logger.debug("%s: removed plain rule for %s", route.key, entry)
            else:
                rule.backend_refs.remove(ref)
                logger.debug("%s: removed backend %s from rule for %s", route.key, ref.name, entry.match_key)

            return True

    return False


def append_rule(route: HTTPRoute, matches: List[RouteMatch], filters: List[RouteFilter],
                backend_refs: List[BackendRef]) -> RouteRule:
    rule = RouteRule(matches=list(matches), filters=list(filters), backend_refs=list(backend_refs))
    route.rules.append(rule)

    logger.debug("%s: appended rule #%d", route.key, len(route.rules) - 1)

    return rule


def attach_filter(rule: RouteRule, route_filter: RouteFilter, prepend: bool = False) -> None:
    # Filter order is the order they run in at request time.
    if prepend:
        rule.filters.insert(0, route_filter)
    else:
        rule.filters.append(route_filter)


def claim_rule(route: HTTPRoute, entry: PathEntry, route_filter: RouteFilter) -> RouteRule:
    """
    Give this entry's path and backend a rule carrying route_filter: reuse
    the sole-backend rule if there is one, or the rule an earlier claim made
    for this entry; otherwise pull the backend out of the skeleton rule and
    append a new rule for it.
    """

    rule = find_sole_backend_rule(route, entry) or find_claimed_rule(route, entry)

    if rule is not None:
        attach_filter(rule, route_filter)
        logger.debug("%s: attached %s filter for %s", route.key, route_filter.type.value, entry)
        return rule

    remove_backend_ref(route, entry)

    return append_rule(route, [entry.route_match()], [route_filter], [dataclasses.replace(entry.backend_ref)])
