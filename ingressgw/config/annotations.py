from typing import Any, Mapping


# Annotations are accepted under the ingress-nginx prefix first, then under
# the Higress one, so Ingresses written for either controller convert.
NGINX_ANNOTATIONS_PREFIX = "nginx.ingress.kubernetes.io"
HIGRESS_ANNOTATIONS_PREFIX = "higress.io"

ANNOTATION_PREFIXES = (NGINX_ANNOTATIONS_PREFIX, HIGRESS_ANNOTATIONS_PREFIX)

# Header control
REQUEST_HEADER_ADD = "request-header-control-add"
REQUEST_HEADER_UPDATE = "request-header-control-update"
REQUEST_HEADER_REMOVE = "request-header-control-remove"

# Canary
CANARY = "canary"
CANARY_BY_HEADER = "canary-by-header"
CANARY_BY_HEADER_VALUE = "canary-by-header-value"
CANARY_BY_HEADER_REGEX = "canary-by-header-regex"
CANARY_BY_COOKIE = "canary-by-cookie"
CANARY_WEIGHT = "canary-weight"
CANARY_WEIGHT_TOTAL = "canary-weight-total"

# Rewrite
REWRITE_TARGET = "rewrite-target"
UPSTREAM_VHOST = "upstream-vhost"

# Mirror
MIRROR_TARGET_SERVICE = "mirror-target-service"

# Timeout
TIMEOUT = "timeout"

# Redirect
SSL_REDIRECT = "ssl-redirect"
FORCE_SSL_REDIRECT = "force-ssl-redirect"
PERMANENT_REDIRECT = "permanent-redirect"
PERMANENT_REDIRECT_CODE = "permanent-redirect-code"
TEMPORAL_REDIRECT = "temporal-redirect"
APP_ROOT = "app-root"


def annotation_key(prefix: str, key: str) -> str:
    return f"{prefix}/{key}"


def _as_string(value: Any) -> str:
    # Annotation values are strings in the apiserver, but hand-written YAML
    # often leaves "true" or "30" unquoted.
    if value is None:
        return ""
    elif isinstance(value, bool):
        return "true" if value else "false"

    return str(value)


def find_annotation_value(annotations: Mapping[str, Any], key: str) -> str:
    """
    Return the value of the first non-empty annotation for key across the
    known prefixes, or "" if there isn't one.
    """

    for prefix in ANNOTATION_PREFIXES:
        value = _as_string(annotations.get(annotation_key(prefix, key)))

        if value:
            return value

    return ""
