from typing import ClassVar, List, Optional

import dataclasses
import datetime
import logging

import durationpy

from ..config.features import CANARY_ALWAYS, CanaryKind
from ..errors import ANNOTATIONS_PATH, ErrorList, FieldError, post_errors
from ..gateway.types import (
    BackendRef,
    HeaderMatch,
    HeaderMatchType,
    HeaderModifierFilter,
    HTTPHeader,
    HTTPRoute,
    PathModifier,
    RequestMirrorFilter,
    RouteFilter,
    RouteMatch,
    RouteTimeouts,
    URLRewriteFilter,
)
from .grouper import PathEntry
from .rules import (
    append_rule,
    claim_rule,
    find_claimed_rule,
    find_rule_by_path,
    find_sole_backend_rule,
    remove_backend_ref,
)
from .weights import WeightAllocator, merge_weighted_backends


class FeatureHandler:
    """
    An abstract handler that folds one feature's configuration, for every
    path entry of one match-key group, into a route's rules.
    """

    name: ClassVar[str] = "feature"

    # Handlers that need the entries they don't act on too (canary needs
    # the baseline backends) set this and filter for themselves.
    sees_all_paths: ClassVar[bool] = False

    logger: logging.Logger

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("ingressgw.merge")

    def wants(self, entry: PathEntry) -> bool:
        # Override wants to select the entries this handler applies to.
        return False

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        # Override _apply to mutate the route for the wanted entries. The
        # entry point is apply; _apply should not be called directly.
        return []

    def apply(self, route: HTTPRoute, paths: List[PathEntry]) -> ErrorList:
        entries = []

        for entry in paths:
            if not self.wants(entry):
                continue

            if entry.backend_ref is None:
                self.logger.debug("%s: %s has no usable backend, skipping", self.name, entry)
                continue

            entries.append(entry)

        if self.sees_all_paths:
            entries = paths
        elif not entries:
            return []

        errors = self._apply(route, entries)

        return post_errors(self.logger, f"{self.name} {route.key}", errors)


class HeaderModHandler (FeatureHandler):
    name = "header-modification"

    def wants(self, entry: PathEntry) -> bool:
        config = entry.features.header_mod
        return config is not None and config.exists

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        for entry in entries:
            config = entry.features.header_mod

            header_filter = HeaderModifierFilter(
                add=[HTTPHeader(k, v) for k, v in (config.add or {}).items()],
                set=[HTTPHeader(k, v) for k, v in (config.set or {}).items()],
                remove=list(config.remove or []),
            )

            claim_rule(route, entry, RouteFilter.header_modifier(header_filter))

        return []


def cookie_regex(cookie: str) -> str:
    return rf"(?:^|;\s*){cookie}={CANARY_ALWAYS}(?:$|;|\s)"


def canary_header_match(entry: PathEntry) -> HeaderMatch:
    config = entry.features.canary

    if config.kind == CanaryKind.COOKIE:
        return HeaderMatch("cookie", cookie_regex(config.header), HeaderMatchType.REGULAR_EXPRESSION)
    elif config.kind == CanaryKind.HEADER_REGEX:
        return HeaderMatch(config.header, config.value, HeaderMatchType.REGULAR_EXPRESSION)

    return HeaderMatch(config.header, config.value, HeaderMatchType.EXACT)


class CanaryHandler (FeatureHandler):
    """
    Canary by header or cookie gets a rule of its own with a header match;
    canary by weight rewrites the weights of the whole group, baseline
    backends included.
    """

    name = "canary"
    sees_all_paths = True

    def _apply(self, route: HTTPRoute, paths: List[PathEntry]) -> ErrorList:
        baseline: List[PathEntry] = []
        header_entries: List[PathEntry] = []
        weight_entries: List[PathEntry] = []

        for entry in paths:
            if entry.backend_ref is None:
                continue

            config = entry.features.canary

            if config is None or not config.exists:
                baseline.append(entry)
            elif config.is_header_like:
                header_entries.append(entry)
            elif config.is_weighted:
                weight_entries.append(entry)
            else:
                self.logger.debug("canary: %s has canary enabled but nothing to route on, skipping", entry)

        for entry in header_entries:
            self.apply_header(route, entry)

        if weight_entries:
            self.apply_weights(route, baseline, weight_entries)

        return []

    def apply_header(self, route: HTTPRoute, entry: PathEntry) -> None:
        match = RouteMatch(path=entry.path_match(), headers=[canary_header_match(entry)])
        rule = find_sole_backend_rule(route, entry) or find_claimed_rule(route, entry)

        if rule is not None:
            # Header canaries replace whatever matches the rule had.
            rule.matches = [match]
            return

        remove_backend_ref(route, entry)
        append_rule(route, [match], [], [dataclasses.replace(entry.backend_ref)])

    def apply_weights(self, route: HTTPRoute, baseline: List[PathEntry], weighted: List[PathEntry]) -> None:
        allocator = WeightAllocator()

        for entry in baseline:
            allocator.add_baseline(entry.backend_ref)

        for entry in weighted:
            config = entry.features.canary
            allocator.add_canary(entry.backend_ref, config.weight, config.weight_total)

        backends = allocator.allocate()

        self.logger.debug("canary: %s weights %s", route.key,
                          ", ".join(f"{b.name}={b.weight}" for b in backends))

        merge_weighted_backends(route, backends, weighted[0].route_match())


def uses_group_capture(path: str) -> bool:
    return "(" in path and ")" in path


class RewriteHandler (FeatureHandler):
    name = "rewrite"

    def wants(self, entry: PathEntry) -> bool:
        config = entry.features.rewrite
        return config is not None and config.exists

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        errors: ErrorList = []

        for entry in entries:
            if uses_group_capture(entry.path):
                errors.append(FieldError.not_supported(ANNOTATIONS_PATH, entry.path, "group capture not supported"))
                continue

            config = entry.features.rewrite
            rewrite = URLRewriteFilter(
                hostname=config.hostname or None,
                path=PathModifier.prefix_match(config.path) if config.path else None,
            )

            claim_rule(route, entry, RouteFilter.rewrite(rewrite))

        return errors


class MirrorHandler (FeatureHandler):
    name = "mirror"

    def wants(self, entry: PathEntry) -> bool:
        config = entry.features.mirror
        return config is not None and config.exists

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        for entry in entries:
            config = entry.features.mirror
            target = BackendRef(
                name=config.service,
                namespace=config.namespace or None,
                port=config.port or None,
            )

            claim_rule(route, entry, RouteFilter.mirror(RequestMirrorFilter(target)))

        return []


def to_duration(seconds: int) -> str:
    return durationpy.to_str(datetime.timedelta(seconds=seconds))


class TimeoutHandler (FeatureHandler):
    """
    Sets the request timeout on the rule that serves a path. It never
    creates a rule, so it has to run after every handler that might.
    """

    name = "timeout"

    def wants(self, entry: PathEntry) -> bool:
        config = entry.features.timeout
        return config is not None and config.exists

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        errors: ErrorList = []

        for entry in entries:
            rule = find_rule_by_path(route, entry)

            if rule is None:
                errors.append(FieldError.not_found(ANNOTATIONS_PATH, str(entry), "rule not found"))
                continue

            rule.timeouts = RouteTimeouts(request=to_duration(entry.features.timeout.seconds))

        return errors


class HandlerPipeline:
    """
    Runs a fixed, ordered list of handlers over one match-key group. Later
    handlers see everything earlier ones did to the route, so the order is
    part of the behavior: timeout needs its rule shaped already, and
    redirect removes backends nobody after it should see.
    """

    handlers: List[FeatureHandler]

    def __init__(self, handlers: List[FeatureHandler]) -> None:
        self.handlers = handlers

    @property
    def names(self) -> List[str]:
        return [h.name for h in self.handlers]

    def apply(self, route: HTTPRoute, paths: List[PathEntry]) -> ErrorList:
        errors: ErrorList = []

        for handler in self.handlers:
            errors.extend(handler.apply(route, paths))

        return errors


def default_handlers(logger: Optional[logging.Logger] = None) -> List[FeatureHandler]:
    # Imported here: redirect builds on this module's FeatureHandler.
    from .redirect import RedirectHandler

    return [
        HeaderModHandler(logger),
        CanaryHandler(logger),
        RewriteHandler(logger),
        MirrorHandler(logger),
        TimeoutHandler(logger),
        RedirectHandler(logger),
    ]
