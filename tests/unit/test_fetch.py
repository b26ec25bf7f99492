import logging
import os

import pytest

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s test %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("ingressgw")

from ingressgw.fetch import (
    INGRESS_GVK,
    IngressObject,
    IngressStorage,
    KubernetesGVK,
    KubernetesObject,
    KubernetesObjectKey,
    ResourceReader,
)
from ingressgw.utils import parse_yaml


def k8s_object_from_yaml(yaml: str) -> KubernetesObject:
    return KubernetesObject(parse_yaml(yaml)[0])


valid_ingress = IngressObject(parse_yaml(
    """
---
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: echo
  namespace: apps
  annotations:
    kubernetes.io/ingress.class: nginx
    nginx.ingress.kubernetes.io/timeout: "30"
  labels:
    app: echo
spec:
  ingressClassName: higress
  tls:
  - hosts: [echo.example.com]
    secretName: echo-tls
  rules:
  - host: echo.example.com
    http:
      paths:
      - path: /
        pathType: Prefix
        backend:
          service:
            name: echo
            port:
              number: 8080
"""
)[0])

ingress_manifests = """
---
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: zeta
  annotations:
    kubernetes.io/ingress.class: higress
spec:
  rules:
  - http:
      paths:
      - path: /z
        pathType: Prefix
        backend:
          service: {name: zeta, port: {number: 80}}
---
apiVersion: v1
kind: Service
metadata:
  name: zeta
spec:
  ports:
  - port: 80
---
apiVersion: v1
kind: List
items:
- apiVersion: networking.k8s.io/v1
  kind: Ingress
  metadata:
    name: alpha
    namespace: other
  spec:
    ingressClassName: higress
    rules: []
- apiVersion: networking.k8s.io/v1
  kind: Ingress
  metadata:
    name: nginx-only
  spec:
    ingressClassName: nginx
---
---
- not
- an object
"""


class TestKubernetesGVK:
    def test_ingress(self):
        assert INGRESS_GVK.api_version == "networking.k8s.io/v1"
        assert INGRESS_GVK.api_group == "networking.k8s.io"
        assert INGRESS_GVK.version == "v1"
        assert INGRESS_GVK.domain == "ingress.networking.k8s.io"

    def test_legacy(self):
        gvk = KubernetesGVK("v1", "Service")

        assert gvk.api_group is None
        assert gvk.domain == "service"

    def test_gateway_api(self):
        gvk = KubernetesGVK.for_gateway_api("HTTPRoute")

        assert gvk.api_version == "gateway.networking.k8s.io/v1"
        assert gvk.kind == "HTTPRoute"


class TestKubernetesObject:
    def test_valid(self):
        assert valid_ingress.gvk == INGRESS_GVK
        assert valid_ingress.namespace == "apps"
        assert valid_ingress.name == "echo"
        assert valid_ingress.key == KubernetesObjectKey(INGRESS_GVK, "apps", "echo")
        assert str(valid_ingress.key) == "apps/echo"
        assert valid_ingress.labels == {"app": "echo"}
        assert len(valid_ingress.annotations) == 2

    def test_ingress_accessors(self):
        # spec.ingressClassName wins over the annotation.
        assert valid_ingress.ingress_class == "higress"
        assert valid_ingress.rules[0]["host"] == "echo.example.com"
        assert valid_ingress.tls[0]["secretName"] == "echo-tls"
        assert valid_ingress.default_backend is None

    def test_default_namespace(self):
        obj = k8s_object_from_yaml("apiVersion: v1\nkind: Service\nmetadata:\n  name: svc\n")

        assert obj.namespace == "default"
        assert obj.spec == {}

    def test_invalid(self):
        with pytest.raises(ValueError, match="not a valid Kubernetes object"):
            k8s_object_from_yaml("apiVersion: v1")

        with pytest.raises(ValueError, match="not a valid Kubernetes object"):
            KubernetesObject(["not", "a", "dict"])


class TestIngressStorage:
    def test_sorted_and_deduplicated(self):
        storage = IngressStorage()

        for name, ns in [("b", "x"), ("a", "y"), ("a", "x"), ("b", "x")]:
            storage.add(IngressObject({
                "apiVersion": "networking.k8s.io/v1",
                "kind": "Ingress",
                "metadata": {"name": name, "namespace": ns},
            }))

        assert len(storage) == 3
        assert KubernetesObjectKey(INGRESS_GVK, "y", "a") in storage
        assert [str(i.key) for i in storage.list()] == ["x/a", "y/a", "x/b"]


class TestResourceReader:
    def test_parse_yaml(self):
        reader = ResourceReader(logger)
        reader.parse_yaml(ingress_manifests)

        assert [str(i.key) for i in reader.ingresses()] == ["other/alpha", "default/zeta"]
        assert reader.errors == []

    def test_namespace_filter(self):
        reader = ResourceReader(logger, namespace="other")
        reader.parse_yaml(ingress_manifests)

        assert [i.name for i in reader.ingresses()] == ["alpha"]

    def test_class_filter(self):
        reader = ResourceReader(logger, ingress_classes=["nginx"])
        reader.parse_yaml(ingress_manifests)

        assert [i.name for i in reader.ingresses()] == ["nginx-only"]

    def test_bad_yaml(self):
        reader = ResourceReader(logger)
        reader.parse_yaml("a: [unterminated", filename="broken.yaml")

        assert len(reader.errors) == 1
        assert reader.errors[0].startswith("broken.yaml: could not parse YAML")

    def test_load_from_filesystem(self, tmp_path):
        (tmp_path / "ingresses.yaml").write_text(ingress_manifests)
        (tmp_path / "notes.txt").write_text("not yaml at all: [")

        nested = tmp_path / "nested"
        nested.mkdir()
        (nested / "echo.yml").write_text(
            "apiVersion: networking.k8s.io/v1\n"
            "kind: Ingress\n"
            "metadata: {name: echo}\n"
            "spec: {ingressClassName: higress}\n"
        )

        reader = ResourceReader(logger)
        reader.load_from_filesystem(str(tmp_path))
        assert [i.name for i in reader.ingresses()] == ["alpha", "zeta"]

        reader = ResourceReader(logger)
        reader.load_from_filesystem(str(tmp_path), recurse=True)
        assert [i.name for i in reader.ingresses()] == ["alpha", "echo", "zeta"]

    def test_missing_path(self, tmp_path):
        reader = ResourceReader(logger)
        reader.load_from_filesystem(os.path.join(str(tmp_path), "nope.yaml"))

        assert reader.errors == [f"no such file or directory: {os.path.join(str(tmp_path), 'nope.yaml')}"]
