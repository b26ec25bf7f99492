from typing import Dict, Iterable, List

from .k8sobject import IngressObject, KubernetesObjectKey


class IngressStorage:
    """
    Holds the Ingresses read for a conversion, keyed by namespace and name.
    Listing is sorted by name so that a conversion is repeatable no matter
    what order the inputs arrived in.
    """

    ingresses: Dict[KubernetesObjectKey, IngressObject]

    def __init__(self, ingresses: Iterable[IngressObject] = ()) -> None:
        self.ingresses = {}

        for ingress in ingresses:
            self.add(ingress)

    def add(self, ingress: IngressObject) -> None:
        # Last write wins, like applying the same manifest twice.
        self.ingresses[ingress.key] = ingress

    def __len__(self) -> int:
        return len(self.ingresses)

    def __contains__(self, key: object) -> bool:
        return key in self.ingresses

    def list(self) -> List[IngressObject]:
        return sorted(self.ingresses.values(), key=lambda ing: (ing.name, ing.namespace))
