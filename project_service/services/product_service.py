from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from project_service.clients.permission_client import PermissionServiceClient
from project_service.clients.workflow_client import WorkflowServiceClient
from project_service.dal.counter_dal import CounterDAL
from project_service.dal.product_dal import ProductTemplateDAL
from project_service.dal.render_dal import EnvironmentDAL, RenderSetDAL
from project_service.dal.service_dal import ServiceDAL
from project_service.errors import (
    NotFoundError,
    ProjectServiceError,
    RuleSetSaveError,
    ServiceUnavailableError,
    ValidationError,
)
from project_service.events import RabbitBus
from project_service.models import (
    CleanupJob,
    ContainerInfo,
    ImageSearchingRule,
    KeyValue,
    ProductInfo,
    ProductTemplate,
    RenderSet,
    ServiceInfoView,
    ServiceRecord,
    Visibility,
)
from project_service.services.cleanup import CleanupQueue
from project_service.services.fanout import DEFAULT_LIMIT, BoundedFanOut
from project_service.services.image_rules import get_preset_rules, validate_custom_rules, validate_match_rules
from project_service.services.reparse import ReparseService

logger = logging.getLogger("project_service.services.product")

ROLE_ADMIN = "admin"
ROLE_OWNER = "owner"
ROLE_USER = "user"
ROLE_OWNER_ID = 1
ROLE_USER_ID = 2

PRODUCT_NAME_RE = re.compile(r"^[a-z0-9-]+$")


def product_counter_key(product_name: str) -> str:
    return f"product:{product_name}"


def render_set_counter_key(name: str) -> str:
    return f"renderset:{name}"


class ProductService:
    def __init__(
        self,
        *,
        products: ProductTemplateDAL,
        services: ServiceDAL,
        counters: CounterDAL,
        render_sets: RenderSetDAL,
        environments: EnvironmentDAL,
        permissions: PermissionServiceClient,
        workflows: WorkflowServiceClient,
        cleanup: CleanupQueue,
        bus: Optional[RabbitBus] = None,
        fanout_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.products = products
        self.services = services
        self.counters = counters
        self.render_sets = render_sets
        self.environments = environments
        self.permissions = permissions
        self.workflows = workflows
        self.cleanup = cleanup
        self.bus = bus
        self.fanout_limit = fanout_limit
        self.reparser = ReparseService(services, counters)

    async def _emit(self, event: str, payload: dict) -> None:
        if self.bus is not None:
            await self.bus.publish(event=event, payload=payload)

    async def _find(self, product_name: str) -> ProductTemplate:
        tmpl = await self.products.find(product_name)
        if tmpl is None:
            raise NotFoundError(f"failed to find product {product_name}")
        return tmpl

    async def _fill_vars(self, tmpl: ProductTemplate) -> ProductTemplate:
        rs = await self.render_sets.find_default(tmpl.product_name)
        tmpl.vars = list(rs.kvs) if rs else []
        return tmpl

    # ─────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────
    async def get_template_services(self, product_name: str) -> ProductTemplate:
        tmpl = await self._find(product_name)
        return await self._fill_vars(tmpl)

    async def list_open_source(self) -> List[ProductTemplate]:
        return await self.products.list(is_opensource=True)

    async def list_enriched(self, user_id: int, is_super_user: bool) -> List[ProductTemplate]:
        """
        Every project, annotated with the caller's role and permission ids, the
        number of services and the number of environments.
        """
        tmpls = await self.products.list()
        if is_super_user:
            for tmpl in tmpls:
                tmpl.role = ROLE_ADMIN
                tmpl.permission_uuids = []
                tmpl.show_project = True
        else:
            tmpls = await self._resolve_permissions(user_id, tmpls)

        async def _totals(tmpl: ProductTemplate) -> ProductTemplate:
            await self._fill_vars(tmpl)
            tmpl.total_service_num = await self.services.count(tmpl.product_name)
            tmpl.total_env_num = await self.environments.count(tmpl.product_name)
            return tmpl

        result = await BoundedFanOut(self.fanout_limit, name="project totals").run(tmpls, _totals)
        return sorted(result, key=lambda t: t.product_name)

    async def _resolve_permissions(self, user_id: int, tmpls: List[ProductTemplate]) -> List[ProductTemplate]:
        remaining: Dict[str, ProductTemplate] = {t.product_name: t for t in tmpls}
        user_projects = await self.permissions.get_user_projects(user_id)

        # 1) projects the user is explicitly a member of
        async def _explicit(entry: Tuple[str, List[int]]) -> Optional[ProductTemplate]:
            name, role_ids = entry
            if not role_ids:
                return None
            role_id = role_ids[0]
            product = await self._find(name)
            uuids = await self.permissions.get_permission_uuids(role_id, name)
            if role_id == ROLE_OWNER_ID:
                product.role = ROLE_OWNER
                product.permission_uuids = []
            else:
                product.role = ROLE_USER
                product.permission_uuids = uuids
            product.show_project = True
            return product

        explicit = await BoundedFanOut(self.fanout_limit, name="explicit roles").run(
            list(user_projects.items()), _explicit
        )
        for p in explicit:
            remaining.pop(p.product_name, None)

        # 2) projects that grant a role to all users
        async def _all_users(product: ProductTemplate) -> Optional[ProductTemplate]:
            try:
                role = await self.permissions.get_all_users_role(product.product_name)
            except ServiceUnavailableError as e:
                logger.warning("all-users role lookup for %s failed, treating as none: %s", product.product_name, e)
                return None
            if role is None:
                return None
            product.permission_uuids = await self.permissions.get_permission_uuids(role.id, product.product_name)
            product.role = ROLE_USER
            product.show_project = True
            return product

        shared = await BoundedFanOut(self.fanout_limit, name="all-users roles").run(
            list(remaining.values()), _all_users
        )
        for p in shared:
            remaining.pop(p.product_name, None)

        # 3) everything else gets the base user role and stays hidden
        async def _default(product: ProductTemplate) -> ProductTemplate:
            product.permission_uuids = await self.permissions.get_permission_uuids(ROLE_USER_ID, "")
            product.role = ROLE_USER
            product.show_project = False
            return product

        rest = await BoundedFanOut(self.fanout_limit, name="default roles").run(list(remaining.values()), _default)
        return explicit + shared + rest

    async def list_templates_hierarchy(self, user_name: str, user_id: int, is_super_user: bool) -> List[ProductInfo]:
        if is_super_user:
            tmpls = await self.products.list()
        else:
            tmpls = []
            for name in await self.permissions.get_user_projects(user_id):
                tmpls.append(await self._find(name))

        resp: List[ProductInfo] = []
        for tmpl in tmpls:
            info = ProductInfo(value=tmpl.product_name, label=tmpl.product_name)
            for svc in await self.services.list_current(in_services=tmpl.all_service_infos()):
                info.services.append(
                    ServiceInfoView(
                        value=svc.service_name,
                        label=svc.service_name,
                        containers=[ContainerInfo(value=c.name, label=c.name) for c in svc.containers],
                    )
                )
            resp.append(info)
        logger.debug("[%s] hierarchy for %d projects", user_name, len(resp))
        return resp

    # ─────────────────────────────────────────────────────────────
    # Create / update
    # ─────────────────────────────────────────────────────────────
    async def _ensure_template(self, tmpl: ProductTemplate) -> None:
        if not tmpl.product_name:
            raise ValidationError("empty product name")
        if not PRODUCT_NAME_RE.match(tmpl.product_name):
            raise ValidationError(f"product name must match {PRODUCT_NAME_RE.pattern}")

        seen = set()
        for group in tmpl.services:
            for name in group:
                if name in seen:
                    raise ValidationError(f"duplicated service found: {name}")
                seen.add(name)

        # revision 0 means a new project; shared services are only checked on edit
        if tmpl.revision != 0:
            current = await self._find(tmpl.product_name)
            known = current.shared_service_map()
            added = [s for s in tmpl.shared_services if s.name not in known]
            if added:
                found = await self.services.list_current(in_services=added, visibility=Visibility.public)
                if len(found) != len(added):
                    raise ValidationError("newly added shared services do not exist or are no longer shared")

        tmpl.revision = await self.counters.next_seq(product_counter_key(tmpl.product_name))

    async def _create_render_set(
        self, tmpl: ProductTemplate, kvs: List[KeyValue], *, env_name: Optional[str] = None
    ) -> RenderSet:
        rs = RenderSet(
            name=tmpl.product_name,
            revision=await self.counters.next_seq(render_set_counter_key(tmpl.product_name)),
            product_tmpl=tmpl.product_name,
            env_name=env_name,
            is_default=env_name is None,
            kvs=kvs,
            update_by=tmpl.update_by,
        )
        return await self.render_sets.create(rs)

    async def create_template(self, tmpl: ProductTemplate) -> ProductTemplate:
        kvs = tmpl.vars or []
        tmpl.vars = None
        await self._ensure_template(tmpl)
        await self.products.create(tmpl)

        try:
            await self._create_render_set(tmpl, kvs)
        except ProjectServiceError as e:
            logger.error("ProductTmpl.Create render set for %s failed: %s", tmpl.product_name, e)
            await self.products.delete(tmpl.product_name)
            raise

        await self._emit("project.created", {"product_name": tmpl.product_name, "by": tmpl.update_by})
        return tmpl

    async def update_template(self, name: str, tmpl: ProductTemplate) -> ProductTemplate:
        kvs = tmpl.vars or []
        tmpl.vars = None
        await self._ensure_template(tmpl)
        await self.products.update(name, tmpl)
        await self._emit("project.updated", {"product_name": name, "revision": tmpl.revision, "by": tmpl.update_by})

        # helm projects keep their variables in the charts
        if tmpl.is_helm():
            return tmpl

        try:
            await self._create_render_set(tmpl, kvs)
        except ProjectServiceError as e:
            logger.warning("ProductTmpl.Update default render set for %s failed: %s", name, e)
        for env in tmpl.env_vars:
            try:
                await self._create_render_set(tmpl, env.vars, env_name=env.env_name)
            except ProjectServiceError as e:
                logger.warning("ProductTmpl.Update render set for %s/%s failed: %s", name, env.env_name, e)
        return tmpl

    async def update_onboarding_status(self, product_name: str, onboarding_status: str) -> None:
        try:
            status = int(onboarding_status)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"invalid onboarding status {onboarding_status!r}") from e
        await self.products.update_onboarding_status(product_name, status)

    async def update_service_order(self, user_name: str, product_name: str, services: List[List[str]]) -> None:
        await self.products.update_service_order(product_name, services, user_name)

    async def update_project(self, name: str, tmpl: ProductTemplate) -> ProductTemplate:
        validate_custom_rules(tmpl.custom_image_rule, tmpl.custom_tar_rule)
        await self.permissions.add_project_team(tmpl.product_name, tmpl.team_id, tmpl.user_ids)
        await self.products.update(name, tmpl)
        await self._emit("project.updated", {"product_name": name, "by": tmpl.update_by})
        return tmpl

    # ─────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────
    async def _service_involved_projects(
        self, services: List[ServiceRecord], product_name: str
    ) -> Dict[str, List[str]]:
        involved: Dict[str, List[str]] = {s.service_name: [] for s in services}
        for other in await self.products.list():
            if other.product_name == product_name:
                continue
            for shared in other.shared_services:
                if shared.owner == product_name and shared.name in involved:
                    involved[shared.name].append(other.product_name)
        return involved

    async def delete_template(self, user_name: str, product_name: str, request_id: str = "") -> CleanupJob:
        """
        Remove a project and everything hanging off it. Bulk removal of the
        project's service revisions and environments runs as a cleanup job.
        """
        public = await self.services.list_current(product_name=product_name, visibility=Visibility.public)
        for svc, projects in (await self._service_involved_projects(public, product_name)).items():
            if projects:
                raise ValidationError(
                    f"shared service [{svc}] is referenced by projects {projects}, remove the references first"
                )

        await self.permissions.delete_project_team(product_name)

        for env in await self.environments.list(product_name):
            await self.environments.mark_deleting(env.env_name, product_name)

        await self.render_sets.delete_by_product(product_name)
        await self.workflows.delete_test_modules(product_name, request_id=request_id)
        await self.workflows.delete_workflows(product_name, request_id=request_id)
        await self.workflows.delete_pipelines(product_name, request_id=request_id)

        await self.products.delete(product_name)
        await self.counters.delete(product_counter_key(product_name))

        job = self.cleanup.submit(f"purge project {product_name}", lambda: self._purge_project(product_name))
        await self._emit("project.deleted", {"product_name": product_name, "by": user_name, "cleanup_job": job.id})
        return job

    async def _purge_project(self, product_name: str) -> None:
        services = await self.services.delete_by_product(product_name)
        envs = await self.environments.delete_by_product(product_name)
        logger.info("purged project %s: %d service revisions, %d environments", product_name, services, envs)

    # ─────────────────────────────────────────────────────────────
    # Image match rules
    # ─────────────────────────────────────────────────────────────
    async def get_custom_match_rules(self, product_name: str) -> List[ImageSearchingRule]:
        tmpl = await self._find(product_name)
        if not tmpl.image_searching_rules:
            return get_preset_rules()
        return [r.model_copy() for r in tmpl.image_searching_rules]

    async def update_custom_match_rules(
        self, product_name: str, user_name: str, rules: List[ImageSearchingRule]
    ) -> List[ImageSearchingRule]:
        """
        Reparse every Helm service of the project with `rules`, then store the
        rules. Service failures leave no new revisions behind; a failure to
        store the rules afterwards raises RuleSetSaveError and keeps the
        reparsed services.
        """
        tmpl = await self._find(product_name)
        validate_match_rules(rules)
        to_save = [r for r in rules if not r.is_blank()]

        services = await self.services.list_current_by_product(product_name)
        await self.reparser.reparse(user_name, services, to_save)

        tmpl.image_searching_rules = to_save
        tmpl.update_by = user_name
        try:
            await self.products.update(product_name, tmpl)
        except ProjectServiceError as e:
            logger.error("failed to update product:%s, err:%s", product_name, e)
            raise RuleSetSaveError("failed to store match rules", detail=str(e)) from e
        return to_save
