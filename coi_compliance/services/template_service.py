"""Requirement template CRUD.

Saving a template commits first and recalculates afterwards: a failed
recalculation is reported in the outcome and never rolls back the save.
Edits of the same template are serialized.
"""

from typing import Optional, Union
from uuid import UUID

from coi_compliance.core.exceptions import AuthorizationError, CascadeInUseError, NotFoundError
from coi_compliance.core.locks import KeyedLockRegistry, template_locks
from coi_compliance.database.models import RequirementTemplate
from coi_compliance.repositories.party_repository import PartyRepository
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.enums import ActivityAction, PartyType
from coi_compliance.schemas.templates import (
    CreateTemplateInput,
    RequirementView,
    TemplateUpdateOutcome,
    TemplateUsage,
    TemplateView,
    UpdateTemplateInput,
)
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.recalculator import ComplianceRecalculator
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)

SYSTEM_DEFAULT_IMMUTABLE = "System default templates cannot be modified. Duplicate it to customize."
SYSTEM_DEFAULT_UNDELETABLE = "System default templates cannot be deleted."


class TemplateService(BaseService):
    def __init__(
        self,
        session_factory,
        recalculator: ComplianceRecalculator,
        emitter: Optional[ActivityEmitter] = None,
        locks: KeyedLockRegistry = template_locks,
    ):
        super().__init__(session_factory)
        self.recalculator = recalculator
        self.emitter = emitter
        self.locks = locks

    async def list_templates(self, organization_id: UUID) -> list[TemplateView]:
        return await self.execute(self._list_templates, organization_id)

    async def get_template(self, organization_id: UUID, template_id: UUID) -> TemplateView:
        return await self.execute(self._get_template, organization_id, template_id)

    async def create_template(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        data: Union[CreateTemplateInput, dict],
    ) -> TemplateView:
        data = self.validate(CreateTemplateInput, data)
        return await self.execute(self._create_template, organization_id, actor_id, data)

    async def update_template(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        template_id: UUID,
        data: Union[UpdateTemplateInput, dict],
    ) -> TemplateUpdateOutcome:
        data = self.validate(UpdateTemplateInput, data)
        return await self.execute(
            self._update_template, organization_id, actor_id, template_id, data
        )

    async def duplicate_template(
        self, organization_id: UUID, actor_id: Optional[UUID], source_template_id: UUID
    ) -> TemplateView:
        return await self.execute(
            self._duplicate_template, organization_id, actor_id, source_template_id
        )

    async def delete_template(
        self, organization_id: UUID, actor_id: Optional[UUID], template_id: UUID
    ) -> None:
        return await self.execute(self._delete_template, organization_id, actor_id, template_id)

    async def get_template_usage(self, organization_id: UUID, template_id: UUID) -> TemplateUsage:
        return await self.execute(self._get_template_usage, organization_id, template_id)

    async def _view(self, repository: TemplateRepository, template: RequirementTemplate) -> TemplateView:
        requirements = await repository.get_requirements(template.id)
        view = TemplateView.model_validate(template)
        view.requirements = [RequirementView.model_validate(r) for r in requirements]
        return view

    async def _load_visible(
        self, repository: TemplateRepository, organization_id: UUID, template_id: UUID
    ) -> RequirementTemplate:
        template = await repository.get_visible(organization_id, template_id)
        if template is None:
            raise NotFoundError("Template")
        return template

    async def _list_templates(self, organization_id: UUID) -> list[TemplateView]:
        async with self.session_factory() as session:
            repository = TemplateRepository(session)
            return [
                await self._view(repository, template)
                for template in await repository.list_visible(organization_id)
            ]

    async def _get_template(self, organization_id: UUID, template_id: UUID) -> TemplateView:
        async with self.session_factory() as session:
            repository = TemplateRepository(session)
            template = await self._load_visible(repository, organization_id, template_id)
            return await self._view(repository, template)

    async def _create_template(
        self, organization_id: UUID, actor_id: Optional[UUID], data: CreateTemplateInput
    ) -> TemplateView:
        async with self.session_factory() as session:
            async with session.begin():
                repository = TemplateRepository(session)
                template = await repository.create(
                    organization_id=organization_id,
                    name=data.name.strip(),
                    description=data.description,
                    category=data.category.value,
                    risk_level=data.risk_level.value,
                    is_system_default=False,
                )
                await repository.add_requirements(template.id, data.requirements)
                view = await self._view(repository, template)

        LOGGER.info(
            f"Template created: {view.name}",
            extra=log_context(organization_id=organization_id, template_id=view.id),
        )
        return view

    async def _update_template(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        template_id: UUID,
        data: UpdateTemplateInput,
    ) -> TemplateUpdateOutcome:
        async with self.locks.hold(template_id):
            async with self.session_factory() as session:
                async with session.begin():
                    repository = TemplateRepository(session)
                    template = await self._load_visible(repository, organization_id, template_id)
                    if template.is_system_default:
                        raise AuthorizationError(SYSTEM_DEFAULT_IMMUTABLE)

                    await repository.update(
                        template,
                        name=data.name.strip(),
                        description=data.description,
                        risk_level=data.risk_level.value,
                    )
                    await repository.replace_requirements(template_id, data.requirements)

            outcome = TemplateUpdateOutcome(
                template_id=template_id, requirement_count=len(data.requirements)
            )

            if self.emitter is not None:
                await self.emitter.emit(
                    organization_id=organization_id,
                    action=ActivityAction.TEMPLATE_UPDATED,
                    description=f"Template updated: {data.name.strip()}",
                    actor_id=actor_id,
                    details={"template_id": str(template_id)},
                )

            try:
                outcome.recalculation = await self.recalculator.recalculate(
                    organization_id, template_id, actor_id=actor_id
                )
            except Exception as e:
                LOGGER.error(
                    "Recalculation after template update failed",
                    exc_info=True,
                    extra=log_context(organization_id=organization_id, template_id=template_id),
                )
                outcome.recalculation_error = str(e) or e.__class__.__name__
                return outcome

            failed = len(outcome.recalculation.failed_entities)
            if failed:
                outcome.recalculation_error = (
                    f"Recalculation failed for {failed} of "
                    f"{outcome.recalculation.entity_count} entities"
                )
            return outcome

    async def _duplicate_template(
        self, organization_id: UUID, actor_id: Optional[UUID], source_template_id: UUID
    ) -> TemplateView:
        async with self.session_factory() as session:
            async with session.begin():
                repository = TemplateRepository(session)
                source = await self._load_visible(repository, organization_id, source_template_id)
                source_requirements = [
                    RequirementView.model_validate(r)
                    for r in await repository.get_requirements(source.id)
                ]
                copy = await repository.create(
                    organization_id=organization_id,
                    name=f"{source.name} (Custom)",
                    description=source.description,
                    category=source.category,
                    risk_level=source.risk_level,
                    is_system_default=False,
                )
                await repository.add_requirements(copy.id, source_requirements)
                return await self._view(repository, copy)

    async def _delete_template(
        self, organization_id: UUID, actor_id: Optional[UUID], template_id: UUID
    ) -> None:
        async with self.locks.hold(template_id):
            async with self.session_factory() as session:
                async with session.begin():
                    repository = TemplateRepository(session)
                    template = await self._load_visible(repository, organization_id, template_id)
                    if template.is_system_default:
                        raise AuthorizationError(SYSTEM_DEFAULT_UNDELETABLE)

                    in_use = 0
                    for party_type in PartyType:
                        in_use += await PartyRepository(session, party_type).count_by_template(
                            organization_id, template_id
                        )
                    if in_use:
                        raise CascadeInUseError(in_use)

                    await repository.delete_requirements(template_id)
                    await repository.delete(template)

        LOGGER.info(
            "Template deleted",
            extra=log_context(organization_id=organization_id, template_id=template_id),
        )

    async def _get_template_usage(self, organization_id: UUID, template_id: UUID) -> TemplateUsage:
        async with self.session_factory() as session:
            await self._load_visible(TemplateRepository(session), organization_id, template_id)
            vendors = PartyRepository(session, PartyType.VENDOR)
            tenants = PartyRepository(session, PartyType.TENANT)
            vendor_count = await vendors.count_by_template(organization_id, template_id)
            tenant_count = await tenants.count_by_template(organization_id, template_id)
            properties = await vendors.property_ids_by_template(organization_id, template_id)
            properties |= await tenants.property_ids_by_template(organization_id, template_id)
            return TemplateUsage(
                vendors=vendor_count,
                tenants=tenant_count,
                total_entities=vendor_count + tenant_count,
                properties=len(properties),
            )
