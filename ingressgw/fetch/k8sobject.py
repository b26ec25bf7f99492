from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional

import collections.abc
import dataclasses


INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


@dataclasses.dataclass(frozen=True)
class KubernetesGVK:
    """
    Represents a Kubernetes resource type (API group, version and kind).
    """

    api_version: str
    kind: str

    @property
    def api_group(self) -> Optional[str]:
        # These are backward-indexed to support apiVersion: v1, which has a
        # version but no group.
        try:
            return self.api_version.split("/", 1)[-2]
        except IndexError:
            return None

    @property
    def version(self) -> str:
        return self.api_version.split("/", 1)[-1]

    @property
    def domain(self) -> str:
        if self.api_group:
            return f"{self.kind.lower()}.{self.api_group}"
        else:
            return self.kind.lower()

    @classmethod
    def for_networking(cls, kind: str, version: str = "v1") -> KubernetesGVK:
        return cls(f"networking.k8s.io/{version}", kind)

    @classmethod
    def for_gateway_api(cls, kind: str, version: str = "v1") -> KubernetesGVK:
        return cls(f"gateway.networking.k8s.io/{version}", kind)


INGRESS_GVK = KubernetesGVK.for_networking("Ingress")


@dataclasses.dataclass(frozen=True)
class KubernetesObjectKey:
    """
    Represents a single Kubernetes resource by kind, namespace and name.
    """

    gvk: KubernetesGVK
    namespace: str
    name: str

    @property
    def kind(self) -> str:
        return self.gvk.kind

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class KubernetesObject (collections.abc.Mapping):
    """
    Represents a raw object from Kubernetes.
    """

    def __init__(self, delegate: Dict[str, Any]) -> None:
        if not isinstance(delegate, dict):
            raise ValueError("delegate is not a valid Kubernetes object")

        self.delegate = delegate

        try:
            self.gvk
            self.name
        except (KeyError, TypeError):
            raise ValueError("delegate is not a valid Kubernetes object")

    def __getitem__(self, key: str) -> Any:
        return self.delegate[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.delegate)

    def __len__(self) -> int:
        return len(self.delegate)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.gvk.domain} {self.key}>"

    @property
    def gvk(self) -> KubernetesGVK:
        return KubernetesGVK(self["apiVersion"], self["kind"])

    @property
    def kind(self) -> str:
        return self.gvk.kind

    @property
    def metadata(self) -> Dict[str, Any]:
        return self["metadata"]

    @property
    def namespace(self) -> str:
        # Manifests read from files often leave the namespace off; the
        # apiserver would put them in "default".
        return self.metadata.get("namespace") or "default"

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def key(self) -> KubernetesObjectKey:
        return KubernetesObjectKey(self.gvk, self.namespace, self.name)

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.get("annotations") or {}

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.get("labels") or {}

    @property
    def spec(self) -> Dict[str, Any]:
        return self.get("spec") or {}


class IngressObject (KubernetesObject):
    """
    A KubernetesObject known to be a networking.k8s.io/v1 Ingress, with
    accessors for the parts of its spec the converter reads.
    """

    @property
    def ingress_class(self) -> str:
        # spec.ingressClassName wins over the legacy annotation.
        return self.spec.get("ingressClassName") or self.annotations.get(INGRESS_CLASS_ANNOTATION, "")

    @property
    def rules(self) -> List[Dict[str, Any]]:
        return self.spec.get("rules") or []

    @property
    def tls(self) -> List[Dict[str, Any]]:
        return self.spec.get("tls") or []

    @property
    def default_backend(self) -> Optional[Dict[str, Any]]:
        return self.spec.get("defaultBackend") or None
