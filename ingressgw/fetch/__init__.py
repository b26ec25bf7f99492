from .k8sobject import INGRESS_GVK, IngressObject, KubernetesGVK, KubernetesObject, KubernetesObjectKey
from .reader import DEFAULT_INGRESS_CLASSES, ResourceReader
from .storage import IngressStorage
