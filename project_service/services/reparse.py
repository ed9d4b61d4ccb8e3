from __future__ import annotations

import logging
from typing import List, Sequence

from project_service.dal.counter_dal import CounterDAL
from project_service.dal.service_dal import ServiceDAL
from project_service.errors import SequenceError
from project_service.models import DeployType, ImageSearchingRule, STATUS_DELETING, ServiceRecord
from project_service.services.image_rules import match_images, parse_values_yaml

logger = logging.getLogger("project_service.services.reparse")


class ReparseService:
    """
    Re-derives the containers of Helm services from their values.yaml with a
    new rule set. Each service gets a new revision; if any service fails,
    every revision written by the batch is deleted again and the first error
    is raised.
    """

    def __init__(self, services: ServiceDAL, counters: CounterDAL):
        self.services = services
        self.counters = counters

    async def reparse(
        self,
        user_name: str,
        service_list: Sequence[ServiceRecord],
        rules: Sequence[ImageSearchingRule],
    ) -> List[ServiceRecord]:
        persisted: List[ServiceRecord] = []
        try:
            for svc in service_list:
                if svc.type != DeployType.helm or svc.helm_chart is None:
                    continue
                persisted.append(await self._reparse_one(user_name, svc, rules))
        except Exception:
            await self._rollback(persisted)
            raise
        return persisted

    async def _reparse_one(
        self, user_name: str, svc: ServiceRecord, rules: Sequence[ImageSearchingRule]
    ) -> ServiceRecord:
        values_yaml = svc.helm_chart.values_yaml
        values = parse_values_yaml(values_yaml, service_name=svc.service_name)
        containers = match_images(values, rules)
        if not containers:
            logger.warning(
                "service:%s containers is empty after parse, valuesYaml %s", svc.service_name, values_yaml
            )

        try:
            rev = await self.counters.next_seq(svc.counter_key)
        except SequenceError as e:
            raise SequenceError(f"get next helm service revision error for {svc.service_name}", detail=str(e)) from e

        updated = svc.model_copy(
            update={"containers": containers, "create_by": user_name, "revision": rev, "status": ""},
            deep=True,
        )
        # A failed earlier attempt may have left a 'deleting' document at this revision.
        await self.services.delete(
            updated.service_name, DeployType.helm, updated.product_name, STATUS_DELETING, updated.revision
        )
        await self.services.create(updated)
        logger.info(
            "service %s/%s reparsed: revision %d -> %d, %d containers",
            svc.product_name, svc.service_name, svc.revision, rev, len(containers),
        )
        return updated

    async def _rollback(self, persisted: Sequence[ServiceRecord]) -> None:
        for svc in persisted:
            try:
                await self.services.delete(svc.service_name, DeployType.helm, svc.product_name, "", svc.revision)
            except Exception as e:
                logger.error("rollback: delete %s revision %d failed: %s", svc.service_name, svc.revision, e)
                continue
            logger.info("rollback: removed %s revision %d", svc.service_name, svc.revision)
