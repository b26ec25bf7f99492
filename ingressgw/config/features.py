from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Tuple

import dataclasses
import enum
import logging
from urllib.parse import urlparse

from ..errors import ANNOTATIONS_PATH, ErrorList, FieldError
from ..utils import parse_bool, split_by_separator, split_key_value, trim_quotes
from . import annotations as anno
from .annotations import find_annotation_value

logger = logging.getLogger("ingressgw.config")

DEFAULT_PERMANENT_CODE = 301
DEFAULT_TEMPORAL_CODE = 302
DEFAULT_SSL_REDIRECT_CODE = 308
DEFAULT_WEIGHT_TOTAL = 100
CANARY_ALWAYS = "always"


def _parse_int(annotations: Mapping[str, Any], key: str, errors: ErrorList) -> Optional[int]:
    value = find_annotation_value(annotations, key)

    if not value:
        return None

    try:
        return int(value.strip())
    except ValueError:
        errors.append(FieldError.type_invalid(ANNOTATIONS_PATH, key, f"invalid integer {value!r}"))
        return None


########
# Header modification


def parse_header_lines(headers: str) -> Dict[str, str]:
    """
    Turn "name value" lines into a dict. Quotes around names and values are
    dropped, and a repeated name keeps its last value.
    """

    result: Dict[str, str] = {}

    for line in headers.split("\n"):
        line = line.strip()

        if not line:
            continue

        key_value = split_key_value(line)

        if len(key_value) != 2:
            logger.warning("invalid header format %r, skipping", line)
            continue

        result[trim_quotes(key_value[0].strip())] = trim_quotes(key_value[1].strip())

    return result


@dataclasses.dataclass
class HeaderModConfig:
    add: Optional[Dict[str, str]] = None
    set: Optional[Dict[str, str]] = None
    remove: Optional[List[str]] = None

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[HeaderModConfig, ErrorList]:
        config = cls()

        add = find_annotation_value(annotations, anno.REQUEST_HEADER_ADD)
        if add:
            config.add = parse_header_lines(add)

        update = find_annotation_value(annotations, anno.REQUEST_HEADER_UPDATE)
        if update:
            config.set = parse_header_lines(update)

        remove = find_annotation_value(annotations, anno.REQUEST_HEADER_REMOVE)
        if remove:
            config.remove = split_by_separator(remove, ",")

        return config, []

    @property
    def exists(self) -> bool:
        return bool(self.add or self.set or self.remove)


########
# Canary


@enum.unique
class CanaryKind (enum.Enum):
    NONE = "none"
    HEADER_EXACT = "header-exact"
    HEADER_REGEX = "header-regex"
    COOKIE = "cookie"
    WEIGHT = "weight"


@dataclasses.dataclass
class CanaryConfig:
    """
    Canary settings for one Ingress. When several canary annotations are
    present, the kind is resolved here once, header > cookie > weight, so
    handlers never look at the raw annotations.
    """

    enabled: bool = False
    kind: CanaryKind = CanaryKind.NONE
    header: str = ""
    value: str = ""
    weight: int = 0
    weight_total: int = DEFAULT_WEIGHT_TOTAL

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[CanaryConfig, ErrorList]:
        config = cls()
        errors: ErrorList = []

        if find_annotation_value(annotations, anno.CANARY) != "true":
            return config, errors

        config.enabled = True

        header = find_annotation_value(annotations, anno.CANARY_BY_HEADER)
        cookie = find_annotation_value(annotations, anno.CANARY_BY_COOKIE)
        weight = find_annotation_value(annotations, anno.CANARY_WEIGHT)

        if header:
            config.header = header
            config.kind = CanaryKind.HEADER_EXACT
            config.value = CANARY_ALWAYS

            value = find_annotation_value(annotations, anno.CANARY_BY_HEADER_VALUE)
            regex = find_annotation_value(annotations, anno.CANARY_BY_HEADER_REGEX)

            if value:
                config.value = value
            elif regex:
                config.value = regex
                config.kind = CanaryKind.HEADER_REGEX
        elif cookie:
            config.header = cookie
            config.kind = CanaryKind.COOKIE
        elif weight:
            parsed_weight = _parse_int(annotations, anno.CANARY_WEIGHT, errors)
            parsed_total = _parse_int(annotations, anno.CANARY_WEIGHT_TOTAL, errors)

            # A weight we can't read disables the canary rather than
            # guessing at a split.
            if not errors:
                config.kind = CanaryKind.WEIGHT
                config.weight = parsed_weight or 0

                if parsed_total is not None:
                    config.weight_total = parsed_total

        return config, errors

    @property
    def exists(self) -> bool:
        return self.enabled

    @property
    def is_header_like(self) -> bool:
        return self.kind in (CanaryKind.HEADER_EXACT, CanaryKind.HEADER_REGEX, CanaryKind.COOKIE)

    @property
    def is_weighted(self) -> bool:
        return self.kind == CanaryKind.WEIGHT and self.weight > 0


########
# Rewrite


@dataclasses.dataclass
class RewriteConfig:
    hostname: str = ""
    path: str = ""

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[RewriteConfig, ErrorList]:
        return cls(
            hostname=find_annotation_value(annotations, anno.UPSTREAM_VHOST).strip(),
            path=find_annotation_value(annotations, anno.REWRITE_TARGET).strip(),
        ), []

    @property
    def exists(self) -> bool:
        return bool(self.hostname or self.path)


########
# Mirror


@dataclasses.dataclass
class MirrorConfig:
    namespace: str = ""
    service: str = ""
    port: int = 0

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[MirrorConfig, ErrorList]:
        target = find_annotation_value(annotations, anno.MIRROR_TARGET_SERVICE)

        if not target:
            return cls(), []

        try:
            return cls.from_service_string(target), []
        except ValueError as e:
            return cls(), [FieldError.invalid(ANNOTATIONS_PATH, anno.MIRROR_TARGET_SERVICE, str(e))]

    @classmethod
    def from_service_string(cls, service: str) -> MirrorConfig:
        """
        Parse [namespace/]name[:port].
        """

        config = cls()
        parts = service.strip().split(":")

        if len(parts) > 2:
            raise ValueError(f"invalid service format {service!r}")

        namespace_name = parts[0].split("/")

        if len(namespace_name) == 2:
            config.namespace, config.service = namespace_name
        elif len(namespace_name) == 1:
            config.service = namespace_name[0]
        else:
            raise ValueError(f"invalid service format {service!r}")

        if len(parts) == 2:
            try:
                config.port = int(parts[1])
            except ValueError:
                raise ValueError(f"invalid port in service {service!r}")

        return config

    @property
    def exists(self) -> bool:
        return bool(self.service)


########
# Timeout


@dataclasses.dataclass
class TimeoutConfig:
    seconds: int = 0

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[TimeoutConfig, ErrorList]:
        errors: ErrorList = []
        value = find_annotation_value(annotations, anno.TIMEOUT)

        if not value:
            return cls(), errors

        try:
            return cls(int(value.strip())), errors
        except ValueError:
            errors.append(FieldError.invalid(ANNOTATIONS_PATH, value, "timeout must be an integer"))
            return cls(), errors

    @property
    def exists(self) -> bool:
        return self.seconds > 0


########
# Redirect


@enum.unique
class RedirectKind (enum.Enum):
    NONE = "none"
    URL = "url"
    SSL = "ssl"


def validate_redirect_url(url: str) -> Optional[str]:
    """
    Return a reason the URL can't be a redirect target, or None if it's fine.
    """

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return str(e)

    if not parsed.scheme.startswith("http"):
        return f"only http and https are valid protocols ({parsed.scheme})"

    return None


@dataclasses.dataclass
class RedirectConfig:
    ssl_redirect: bool = False
    url: str = ""
    code: int = 0
    root_redirect: str = ""

    @classmethod
    def parse(cls, annotations: Mapping[str, Any]) -> Tuple[RedirectConfig, ErrorList]:
        config = cls()
        errors: ErrorList = []

        if parse_bool(find_annotation_value(annotations, anno.SSL_REDIRECT)):
            config.ssl_redirect = True

        if parse_bool(find_annotation_value(annotations, anno.FORCE_SSL_REDIRECT)):
            config.ssl_redirect = True

        # permanent-redirect, then its code, then temporal-redirect: a
        # temporal redirect wins when both are set.
        for key, code in ((anno.PERMANENT_REDIRECT, DEFAULT_PERMANENT_CODE),
                          (anno.TEMPORAL_REDIRECT, DEFAULT_TEMPORAL_CODE)):
            url = find_annotation_value(annotations, key)

            if not url:
                continue

            reason = validate_redirect_url(url)

            if reason:
                errors.append(FieldError.invalid(ANNOTATIONS_PATH, url, reason))
                continue

            config.url = url
            config.code = code

            if key == anno.PERMANENT_REDIRECT:
                override = _parse_int(annotations, anno.PERMANENT_REDIRECT_CODE, errors)

                if override is not None:
                    config.code = override

        config.root_redirect = find_annotation_value(annotations, anno.APP_ROOT)

        return config, errors

    @property
    def kind(self) -> RedirectKind:
        if self.url:
            return RedirectKind.URL
        elif self.ssl_redirect:
            return RedirectKind.SSL

        return RedirectKind.NONE

    @property
    def exists(self) -> bool:
        return self.kind != RedirectKind.NONE or bool(self.root_redirect)


########
# The bundle


@dataclasses.dataclass
class FeatureBundle:
    header_mod: Optional[HeaderModConfig] = None
    canary: Optional[CanaryConfig] = None
    rewrite: Optional[RewriteConfig] = None
    mirror: Optional[MirrorConfig] = None
    timeout: Optional[TimeoutConfig] = None
    redirect: Optional[RedirectConfig] = None


def extract_features(annotations: Mapping[str, Any]) -> Tuple[FeatureBundle, ErrorList]:
    """
    Parse every feature's annotations into a FeatureBundle. A failure in one
    feature leaves that feature disabled and doesn't touch the others.

    A URL or SSL redirect takes the whole path: canary and rewrite aren't
    extracted at all when one is present.
    """

    bundle = FeatureBundle()
    errors: ErrorList = []

    bundle.header_mod, errs = HeaderModConfig.parse(annotations)
    errors.extend(errs)

    bundle.redirect, errs = RedirectConfig.parse(annotations)
    errors.extend(errs)

    bundle.mirror, errs = MirrorConfig.parse(annotations)
    errors.extend(errs)

    bundle.timeout, errs = TimeoutConfig.parse(annotations)
    errors.extend(errs)

    if bundle.redirect.kind == RedirectKind.NONE:
        bundle.canary, errs = CanaryConfig.parse(annotations)
        errors.extend(errs)

        bundle.rewrite, errs = RewriteConfig.parse(annotations)
        errors.extend(errs)

    return bundle, errors
