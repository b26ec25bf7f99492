from typing import List, Optional

from urllib.parse import urlparse

from ..config.features import DEFAULT_PERMANENT_CODE, DEFAULT_SSL_REDIRECT_CODE, RedirectKind
from ..errors import ANNOTATIONS_PATH, ErrorList, FieldError
from ..gateway.types import (
    HTTPRoute,
    PathMatch,
    PathMatchType,
    PathModifier,
    RequestRedirectFilter,
    RouteFilter,
    RouteMatch,
    RouteRule,
)
from .grouper import PathEntry
from .handlers import FeatureHandler
from .rules import attach_filter, find_sole_backend_rule, remove_backend_ref

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}

ROOT_PATH = "/"


def redirect_filter_from_url(url: str, status_code: int) -> RequestRedirectFilter:
    """
    Build the redirect filter for a target URL. The port is only set when
    it isn't the scheme's default. Raises ValueError for a URL whose port
    can't be parsed.
    """

    parsed = urlparse(url)
    port = parsed.port

    if port is not None and DEFAULT_PORTS.get(parsed.scheme) == port:
        port = None

    return RequestRedirectFilter(
        scheme=parsed.scheme or None,
        hostname=parsed.hostname or None,
        path=PathModifier.full_path(parsed.path) if parsed.path else None,
        port=port,
        status_code=status_code,
    )


def ssl_redirect_filter() -> RequestRedirectFilter:
    return RequestRedirectFilter(scheme="https", status_code=DEFAULT_SSL_REDIRECT_CODE)


def is_ssl_only(rule: RouteRule) -> bool:
    if len(rule.filters) != 1 or rule.filters[0].request_redirect is None:
        return False

    redirect = rule.filters[0].request_redirect

    # A URL redirect to an https target isn't an SSL redirect.
    return redirect.is_ssl_redirect and redirect.hostname is None and redirect.path is None


def is_root_redirect(rule: RouteRule) -> bool:
    matches_root = any(m.path is not None and m.path.type == PathMatchType.EXACT and m.path.value == ROOT_PATH
                       for m in rule.matches)

    return matches_root and any(f.full_path is not None for f in rule.redirect_filters)


class RedirectHandler (FeatureHandler):
    """
    Resolves URL, SSL and root redirects for one match-key group.

    A URL or SSL redirect folds into the path's own rule when it has one,
    joins a rule already redirecting to the same place, or gets a new rule.
    Either way the path's plain backend goes away, since a redirected
    request never reaches it. Existing rules change in place; new rules
    are held back and appended once the whole group is done, URL and SSL
    redirects ahead of the root redirect.
    """

    name = "redirect"

    def wants(self, entry: PathEntry) -> bool:
        config = entry.features.redirect
        return config is not None and config.exists

    def _apply(self, route: HTTPRoute, entries: List[PathEntry]) -> ErrorList:
        errors: ErrorList = []
        pending: List[RouteRule] = []
        pending_root: List[RouteRule] = []

        for entry in entries:
            config = entry.features.redirect
            kind = config.kind

            if kind == RedirectKind.URL:
                err = self.apply_url(route, entry, pending)

                if err is not None:
                    errors.append(err)
            elif kind == RedirectKind.SSL:
                self.apply_ssl(route, entry, pending)

            if config.root_redirect:
                self.apply_root(route, config.root_redirect, pending + pending_root, pending_root)

        route.rules.extend(pending + pending_root)

        return errors

    def _all_rules(self, route: HTTPRoute, pending: List[RouteRule]) -> List[RouteRule]:
        return route.rules.as_list() + pending

    def apply_url(self, route: HTTPRoute, entry: PathEntry, pending: List[RouteRule]) -> Optional[FieldError]:
        config = entry.features.redirect

        try:
            redirect = redirect_filter_from_url(config.url, config.code)
        except ValueError as e:
            return FieldError.invalid(ANNOTATIONS_PATH, config.url, f"invalid redirect URL: {e}")

        rule = find_sole_backend_rule(route, entry)

        if rule is not None and not rule.has_redirect_filter:
            attach_filter(rule, RouteFilter.redirect(redirect))
            self.logger.debug("redirect: %s attached URL redirect for %s", route.key, entry)
        else:
            shared = self.find_shared_redirect(route, pending, redirect)

            if shared is not None:
                shared.matches.append(entry.route_match())
                self.logger.debug("redirect: %s merged %s into shared redirect rule", route.key, entry)
            else:
                pending.append(RouteRule(matches=[entry.route_match()], filters=[RouteFilter.redirect(redirect)]))

        remove_backend_ref(route, entry)

        return None

    def find_shared_redirect(self, route: HTTPRoute, pending: List[RouteRule],
                             redirect: RequestRedirectFilter) -> Optional[RouteRule]:
        for rule in self._all_rules(route, pending):
            for existing in rule.redirect_filters:
                # Redirects without a host never merge: app-root and SSL rules have none.
                if (existing.hostname is not None and existing.hostname == redirect.hostname
                        and existing.full_path == redirect.full_path):
                    return rule

        return None

    def apply_ssl(self, route: HTTPRoute, entry: PathEntry, pending: List[RouteRule]) -> None:
        redirect = RouteFilter.redirect(ssl_redirect_filter())
        rule = find_sole_backend_rule(route, entry)

        if rule is not None and not rule.has_redirect_filter:
            # The SSL redirect has to run before anything else on the rule.
            attach_filter(rule, redirect, prepend=True)
            self.logger.debug("redirect: %s prepended SSL redirect for %s", route.key, entry)
        else:
            shared = next((r for r in self._all_rules(route, pending) if is_ssl_only(r)), None)

            if shared is not None:
                shared.matches.append(entry.route_match())
            else:
                pending.insert(0, RouteRule(matches=[entry.route_match()], filters=[redirect]))

        remove_backend_ref(route, entry)

    def apply_root(self, route: HTTPRoute, target: str, pending: List[RouteRule],
                   pending_root: List[RouteRule]) -> None:
        if any(is_root_redirect(rule) for rule in self._all_rules(route, pending)):
            self.logger.debug("redirect: %s already has a root redirect", route.key)
            return

        redirect = RequestRedirectFilter(path=PathModifier.full_path(target), status_code=DEFAULT_PERMANENT_CODE)

        pending_root.append(RouteRule(
            matches=[RouteMatch(path=PathMatch(PathMatchType.EXACT, ROOT_PATH))],
            filters=[RouteFilter.redirect(redirect)],
        ))
