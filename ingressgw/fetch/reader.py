from typing import Any, Iterable, List, Optional, Set

import logging
import os

import yaml

from ..utils import parse_yaml
from .k8sobject import INGRESS_GVK, IngressObject, KubernetesObject
from .storage import IngressStorage


DEFAULT_INGRESS_CLASSES = frozenset(["higress"])


class ResourceReader:
    """
    Reads Ingress manifests from YAML files or text into an IngressStorage,
    keeping only Ingresses of the classes we convert (and, optionally, only
    those in a single namespace).
    """

    logger: logging.Logger
    ingress_classes: Set[str]
    namespace: Optional[str]
    storage: IngressStorage
    errors: List[str]

    def __init__(self, logger: logging.Logger, ingress_classes: Optional[Iterable[str]] = None,
                 namespace: Optional[str] = None) -> None:
        self.logger = logger
        self.ingress_classes = set(ingress_classes if ingress_classes is not None else DEFAULT_INGRESS_CLASSES)
        self.namespace = namespace
        self.storage = IngressStorage()
        self.errors = []

    def post_error(self, msg: str) -> None:
        self.logger.error(msg)
        self.errors.append(msg)

    def load_from_filesystem(self, path: str, recurse: bool = False) -> None:
        inputs: List[str] = []

        if os.path.isdir(path):
            dirs = [path]

            while dirs:
                dirpath = dirs.pop(0)

                for filename in sorted(os.listdir(dirpath)):
                    filepath = os.path.join(dirpath, filename)

                    if recurse and os.path.isdir(filepath):
                        dirs.append(filepath)
                        continue

                    if not os.path.isfile(filepath):
                        continue

                    if not filename.lower().endswith((".yaml", ".yml")):
                        continue

                    inputs.append(filepath)
        elif os.path.isfile(path):
            inputs.append(path)
        else:
            self.post_error("no such file or directory: %s" % path)

        for filepath in inputs:
            self.logger.debug("reading %s" % filepath)

            try:
                with open(filepath, "r") as f:
                    serialization = f.read()
            except IOError as e:
                self.post_error("could not read YAML from %s: %s" % (filepath, e))
                continue

            self.parse_yaml(serialization, filename=filepath)

    def parse_yaml(self, serialization: str, filename: str = "anonymous YAML") -> None:
        try:
            objects = parse_yaml(serialization)
        except yaml.error.YAMLError as e:
            self.post_error("%s: could not parse YAML: %s" % (filename, e))
            return

        for count, obj in enumerate(objects, start=1):
            self.handle_object(obj, location=f"{filename}.{count}")

    def handle_object(self, obj: Any, location: str = "anonymous") -> bool:
        if not obj:
            self.logger.debug("%s: skipping empty document" % location)
            return False

        # A List wraps other objects; unpack it.
        if isinstance(obj, dict) and obj.get("kind") == "List":
            handled = False

            for item in obj.get("items") or []:
                handled = self.handle_object(item, location=location) or handled

            return handled

        try:
            k8s_obj = KubernetesObject(obj)
        except ValueError:
            self.logger.warning("%s: not a Kubernetes object, skipping" % location)
            return False

        if k8s_obj.gvk != INGRESS_GVK:
            self.logger.debug("%s: skipping %s %s" % (location, k8s_obj.gvk.domain, k8s_obj.name))
            return False

        ingress = IngressObject(obj)

        if ingress.ingress_class not in self.ingress_classes:
            self.logger.debug(
                f"{location}: ignoring Ingress {ingress.key} with class {ingress.ingress_class!r}"
            )
            return False

        if self.namespace and ingress.namespace != self.namespace:
            self.logger.debug(f"{location}: ignoring Ingress {ingress.key} outside namespace {self.namespace}")
            return False

        self.logger.debug(f"{location}: handling Ingress {ingress.key}")
        self.storage.add(ingress)
        return True

    def ingresses(self) -> List[IngressObject]:
        return self.storage.list()
