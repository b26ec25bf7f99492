import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s test %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("ingressgw")

from ingressgw.errors import FieldPath
from ingressgw.fetch import IngressObject
from ingressgw.gateway import NamespacedName, PathMatchType, SkeletonBuilder, get_rule_groups, name_from_host
from ingressgw.gateway.skeleton import to_backend_ref
from ingressgw.utils import parse_yaml

from tests.utils import backend_weights, make_ingress, path_values


def ingresses_from_yaml(yaml: str):
    return [IngressObject(obj) for obj in parse_yaml(yaml) if obj]


tls_ingresses = ingresses_from_yaml(
    """
---
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: shop
  namespace: web
spec:
  ingressClassName: higress
  tls:
  - hosts: [shop.example.com]
    secretName: shop-tls
  rules:
  - host: shop.example.com
    http:
      paths:
      - path: /cart
        pathType: Prefix
        backend:
          service: {name: cart, port: {number: 80}}
      - path: /
        pathType: Exact
        backend:
          service: {name: front, port: {number: 80}}
  - host: "*.example.com"
    http:
      paths:
      - path: /
        pathType: Prefix
        backend:
          service: {name: front, port: {number: 80}}
---
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: shop-admin
  namespace: web
spec:
  ingressClassName: higress
  tls:
  - hosts: [shop.example.com]
    secretName: shop-admin-tls
  rules:
  - host: shop.example.com
    http:
      paths:
      - path: /cart
        pathType: Prefix
        backend:
          service: {name: cart, port: {number: 80}}
      - path: /admin
        backend:
          service: {name: admin, port: {name: http}}
      - path: /storage
        pathType: Prefix
        backend:
          resource: {apiGroup: k8s.example.com, kind: StorageBucket, name: static}
"""
)


class TestNames:
    def test_name_from_host(self):
        assert name_from_host("shop.example.com") == "shop-example-com"
        assert name_from_host("*.example.com") == "example-com"
        assert name_from_host("*") == "all-hosts"
        assert name_from_host("") == "all-hosts"


class TestRuleGroups:
    def test_grouping(self):
        groups = get_rule_groups(tls_ingresses)

        assert list(groups.keys()) == [
            ("web", "higress", "shop.example.com"),
            ("web", "higress", "*.example.com"),
        ]

        shop = groups[("web", "higress", "shop.example.com")]

        assert shop.name == "shop"
        assert [i.name for i in shop.ingresses] == ["shop", "shop-admin"]
        assert len(shop.rules) == 2
        assert shop.route_key == NamespacedName("web", "shop-shop-example-com")

    def test_default_backend_only(self):
        ingress = IngressObject({
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {"name": "fallback"},
            "spec": {
                "ingressClassName": "higress",
                "defaultBackend": {"service": {"name": "fallback", "port": {"number": 80}}},
            },
        })

        groups = get_rule_groups([ingress])

        assert list(groups.keys()) == [("default", "higress", "")]

        resources, errors = SkeletonBuilder(logger).build(groups)
        route = resources.routes[NamespacedName("default", "fallback-all-hosts")]

        assert errors == []
        assert route.hostnames == []
        assert len(route.rules) == 1
        assert route.rules[0].matches == []
        assert backend_weights(route.rules[0]) == {"fallback": None}


class TestBackendRefs:
    def test_service(self):
        ref, err = to_backend_ref({"service": {"name": "svc", "port": {"number": 8080}}}, FieldPath("backend"))

        assert err is None
        assert (ref.name, ref.port, ref.weight) == ("svc", 8080, None)

    def test_named_port(self):
        ref, err = to_backend_ref({"service": {"name": "svc", "port": {"name": "http"}}}, FieldPath("backend"))

        assert ref is None
        assert err.field == "backend.service.port"
        assert err.detail == "named ports not supported: http"

    def test_non_numeric_port(self):
        ref, err = to_backend_ref({"service": {"name": "svc", "port": {"number": "http8080"}}}, FieldPath("backend"))

        assert ref is None
        assert err.field == "backend.service.port.number"
        assert err.value == "http8080"
        assert err.detail == "port number must be an integer"

    def test_numeric_string_port(self):
        ref, err = to_backend_ref({"service": {"name": "svc", "port": {"number": "8080"}}}, FieldPath("backend"))

        assert err is None
        assert ref.port == 8080

    def test_resource(self):
        ref, err = to_backend_ref({"resource": {"apiGroup": "g.example.com", "kind": "Bucket", "name": "b"}},
                                  FieldPath("backend"))

        assert err is None
        assert (ref.group, ref.kind, ref.name, ref.port) == ("g.example.com", "Bucket", "b", None)

    def test_neither(self):
        ref, err = to_backend_ref({}, FieldPath("backend"))

        assert ref is None
        assert err is not None


class TestSkeletonBuilder:
    def test_routes(self):
        resources, errors = SkeletonBuilder(logger).build(get_rule_groups(tls_ingresses))

        assert [str(k) for k in resources.routes] == ["web/shop-shop-example-com", "web/shop-example-com"]
        assert [str(e.field) for e in errors] == ["spec.rules[0].http.paths[1].backend.service.port"]

        route = resources.routes[NamespacedName("web", "shop-shop-example-com")]

        assert route.hostnames == ["shop.example.com"]
        assert [p.name for p in route.parent_refs] == ["higress"]

        # Both Ingresses' /cart paths share one rule and one backend.
        assert [path_values(r) for r in route.rules] == [["/cart"], ["/"], ["/storage"]]
        assert [r.matches[0].path.type for r in route.rules] == [
            PathMatchType.PATH_PREFIX, PathMatchType.EXACT, PathMatchType.PATH_PREFIX,
        ]
        assert backend_weights(route.rules[0]) == {"cart": None}
        assert route.rules[2].backend_refs[0].kind == "StorageBucket"

    def test_gateways(self):
        resources, _ = SkeletonBuilder(logger).build(get_rule_groups(tls_ingresses))

        assert list(resources.gateways.keys()) == [NamespacedName("web", "higress")]

        gateway = resources.gateways[NamespacedName("web", "higress")]

        assert [(l.name, l.hostname, l.port, l.protocol) for l in gateway.listeners] == [
            ("shop-example-com-http", "shop.example.com", 80, "HTTP"),
            ("shop-example-com-https", "shop.example.com", 443, "HTTPS"),
            ("example-com-http", "*.example.com", 80, "HTTP"),
        ]
        assert gateway.listener("shop-example-com-https").certificate_refs == ["shop-tls", "shop-admin-tls"]

        manifest = gateway.as_dict()

        assert manifest["apiVersion"] == "gateway.networking.k8s.io/v1"
        assert manifest["spec"]["gatewayClassName"] == "higress"
        assert manifest["spec"]["listeners"][1]["tls"] == {
            "certificateRefs": [{"name": "shop-tls"}, {"name": "shop-admin-tls"}],
        }

    def test_implementation_specific(self):
        ingress = make_ingress("regex", [("/api/v[0-9]+", "ImplementationSpecific", "api", 80)])
        resources, _ = SkeletonBuilder(logger).build(get_rule_groups([ingress]))
        route = resources.routes[NamespacedName("default", "regex-example-com")]

        assert route.rules[0].matches[0].path.type == PathMatchType.REGULAR_EXPRESSION

    def test_duplicate_route_name(self):
        # Both hosts slug to "a-b".
        ingresses = [
            make_ingress("dup", [("/", "Prefix", "one", 80)], host="a.b"),
            make_ingress("dup", [("/", "Prefix", "two", 80)], host="a-b"),
        ]

        resources, errors = SkeletonBuilder(logger).build(get_rule_groups(ingresses))

        assert len(resources.routes) == 1
        assert len(errors) == 1
        assert errors[0].detail == "duplicate HTTPRoute name"
