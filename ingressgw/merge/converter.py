from typing import Iterable, List, Optional, Tuple

import logging

from ..errors import ErrorList
from ..fetch.k8sobject import IngressObject
from ..gateway.skeleton import SkeletonBuilder, get_rule_groups
from ..gateway.types import GatewayResources
from .grouper import FeatureExtractor, PathGrouper
from .handlers import FeatureHandler, HandlerPipeline, default_handlers


class Converter:
    """
    Turns a set of Ingresses into Gateway API resources: the plain skeleton
    first, then every feature handler over every match-key group of every
    route, in pipeline order.

    convert() never raises for bad input. Every problem it finds comes back
    as a FieldError alongside whatever it could build.
    """

    logger: logging.Logger
    pipeline: HandlerPipeline

    def __init__(self, logger: Optional[logging.Logger] = None,
                 handlers: Optional[List[FeatureHandler]] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("ingressgw.merge")

        if handlers is None:
            handlers = default_handlers(self.logger)

        self.pipeline = HandlerPipeline(handlers)

    def convert(self, ingresses: Iterable[IngressObject]) -> Tuple[GatewayResources, ErrorList]:
        rule_groups = get_rule_groups(list(ingresses))

        resources, errors = SkeletonBuilder(self.logger).build(rule_groups)

        grouper = PathGrouper(self.logger, FeatureExtractor(self.logger))

        for rg in rule_groups.values():
            route = resources.routes.get(rg.route_key)

            if route is None:
                self.logger.warning("no HTTPRoute %s for rule group %s, skipping", rg.route_key, rg.name)
                continue

            path_groups, errs = grouper.group(rg)
            errors.extend(errs)

            for match_key, paths in path_groups.items():
                self.logger.debug("%s: %s has %d paths", route.key, match_key, len(paths))
                errors.extend(self.pipeline.apply(route, paths))

        self.logger.debug("converted %d HTTPRoutes, %d Gateways, %d errors",
                          len(resources.routes), len(resources.gateways), len(errors))

        return resources, errors
