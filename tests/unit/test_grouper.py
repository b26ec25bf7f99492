import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s test %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("ingressgw")

from ingressgw.gateway import get_rule_groups
from ingressgw.gateway.types import PathMatchType
from ingressgw.merge import FeatureExtractor, MatchKey, PathGrouper

from tests.utils import make_ingress


def group_paths(*ingresses):
    groups = get_rule_groups(list(ingresses))
    assert len(groups) == 1

    return PathGrouper(logger).group(next(iter(groups.values())))


class TestPathGrouper:
    def test_same_key_same_group(self):
        groups, errors = group_paths(
            make_ingress("a", [("/api", "Prefix", "a", 80), ("/", "Exact", "a", 80)]),
            make_ingress("b", [("/api", "Prefix", "b", 80), ("/api", "Exact", "b", 80)]),
            make_ingress("c", [("/api", "Prefix", "c", 80)]),
        )

        assert errors == []
        assert list(groups.keys()) == [
            MatchKey("Prefix", "/api"),
            MatchKey("Exact", "/"),
            MatchKey("Exact", "/api"),
        ]
        assert [e.backend_ref.name for e in groups[MatchKey("Prefix", "/api")]] == ["a", "b", "c"]

    def test_stable_order(self):
        ingresses = [
            make_ingress(name, [(path, "Prefix", name, 80) for path in ["/z", "/a", "/m"]])
            for name in ["one", "two", "three"]
        ]

        first, _ = group_paths(*ingresses)

        for _ in range(3):
            again, _ = group_paths(*ingresses)

            assert list(again.keys()) == list(first.keys())
            assert [[str(e) for e in v] for v in again.values()] == [[str(e) for e in v] for v in first.values()]

    def test_defaults(self):
        ingress = make_ingress("a", [("/x", "Prefix", "a", 80)])
        # Neither path nor pathType given.
        del ingress.spec["rules"][0]["http"]["paths"][0]["path"]
        del ingress.spec["rules"][0]["http"]["paths"][0]["pathType"]

        groups, _ = group_paths(ingress)
        entry = groups[MatchKey("ImplementationSpecific", "/")][0]

        assert entry.path_match().type == PathMatchType.REGULAR_EXPRESSION
        assert entry.route_match().path.value == "/"

    def test_entry(self):
        groups, _ = group_paths(make_ingress("a", [("/api", "Prefix", "svc", 8080)], annotations={"timeout": "5"}))
        entry = groups[MatchKey("Prefix", "/api")][0]

        assert entry.host == "example.com"
        assert str(entry.source) == "default/a"
        assert str(entry.field_path) == "spec.rules[0].http.paths[0]"
        assert entry.features.timeout.seconds == 5
        assert str(entry) == "default/a example.com Prefix//api -> svc:8080"

    def test_bad_backend_keeps_entry(self):
        ingress = make_ingress("a", [("/api", "Prefix", "svc", 80)])
        ingress.spec["rules"][0]["http"]["paths"][0]["backend"] = {"service": {"name": "svc", "port": {"name": "http"}}}

        groups, errors = group_paths(ingress)

        # The skeleton reports the backend; the grouper doesn't repeat it.
        assert errors == []
        assert groups[MatchKey("Prefix", "/api")][0].backend_ref is None

    def test_errors_reported_once(self):
        ingress = make_ingress("a", [("/a", "Prefix", "svc", 80), ("/b", "Prefix", "svc", 80)],
                               annotations={"timeout": "soon"})

        extractor = FeatureExtractor(logger)
        groups, errors = PathGrouper(logger, extractor).group(next(iter(get_rule_groups([ingress]).values())))

        assert len(errors) == 1
        assert len(groups) == 2

        # A second pass over the same Ingress (another host, say) reuses the bundle.
        _, errors = PathGrouper(logger, extractor).group(next(iter(get_rule_groups([ingress]).values())))

        assert errors == []
