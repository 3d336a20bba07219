from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from georisk.errors import NotFoundError, UnauthorizedError, ValidationError
from georisk.lifecycle import can_review
from georisk.locations import LocationCatalog, load_catalog_from_env
from georisk.models import Location, ReportDraft, ReportRecord, ReportStatus, Role, UserRecord
from georisk.record_store import RecordStore, create_record_store_from_env
from georisk.repositories import DEFAULT_REPORTS_KEY, DEFAULT_USERS_KEY, ReportRepository, UserRepository
from georisk.security import Identity, require_identity
from georisk.view_filters import for_identity, for_reviewer

logger = logging.getLogger(__name__)


class ReportService:
    """Operations offered to the presentation layer.

    Role checks live here and in the lifecycle module only; the repositories
    trust the role they are handed.
    """

    def __init__(
        self,
        *,
        record_store: RecordStore,
        catalog: LocationCatalog,
        reports_key: str = DEFAULT_REPORTS_KEY,
        users_key: str = DEFAULT_USERS_KEY,
    ) -> None:
        self.record_store = record_store
        self.catalog = catalog
        self.reports = ReportRepository(record_store, catalog=catalog, key=reports_key)
        self.users = UserRepository(record_store, key=users_key)

    def create_report(self, draft: ReportDraft, identity: Identity | None) -> ReportRecord:
        caller = require_identity(identity)
        return self.reports.create(draft, reporter_id=caller.id)

    def list_reports_for_caller(self, identity: Identity | None) -> list[ReportRecord]:
        caller = require_identity(identity)
        return for_identity(self.reports.list_all(), caller)

    def list_all_reports(self, identity: Identity | None) -> list[ReportRecord]:
        caller = require_identity(identity)
        if not can_review(caller.role):
            raise UnauthorizedError("listing all reports requires reviewer or admin role")
        return for_reviewer(self.reports.list_all())

    def get_report(self, report_id: str, identity: Identity | None) -> ReportRecord:
        caller = require_identity(identity)
        record = self.reports.get(report_id)
        # Reporters cannot tell other reporters' records apart from missing ones.
        if not for_identity([record], caller):
            raise NotFoundError(report_id)
        return record

    def transition_report(
        self,
        report_id: str,
        new_status: ReportStatus | str,
        identity: Identity | None,
    ) -> ReportRecord:
        caller = require_identity(identity)
        if not can_review(caller.role):
            logger.warning("report_transition_forbidden id=%s caller=%s role=%s", report_id, caller.id, caller.role.value)
            raise UnauthorizedError("status changes require reviewer or admin role")
        return self.reports.update_status(report_id, new_status, caller_role=caller.role)

    def list_locations(self) -> list[Location]:
        return self.catalog.list()

    def list_users(self, identity: Identity | None) -> list[UserRecord]:
        caller = require_identity(identity)
        if caller.role is not Role.ADMIN:
            raise UnauthorizedError("listing users requires admin role")
        return self.users.list_all()

    def register_user(
        self,
        user_id: str,
        *,
        name: str,
        email: str,
        role: Role | str,
        identity: Identity | None,
    ) -> UserRecord:
        caller = require_identity(identity)
        if caller.role is not Role.ADMIN:
            raise UnauthorizedError("registering users requires admin role")
        parsed_role = Role.parse(role)
        if parsed_role is None:
            raise ValidationError("role", f"unsupported role: {role!r}")
        user = UserRecord(id=user_id, name=name.strip(), email=email.strip(), role=parsed_role)
        return self.users.upsert(user)


def create_service_from_env(environ: Mapping[str, str] | None = None) -> ReportService:
    env = os.environ if environ is None else environ
    record_store = create_record_store_from_env(env)
    service = ReportService(
        record_store=record_store,
        catalog=load_catalog_from_env(env),
        reports_key=env.get("GEORISK_REPORTS_KEY", DEFAULT_REPORTS_KEY).strip() or DEFAULT_REPORTS_KEY,
        users_key=env.get("GEORISK_USERS_KEY", DEFAULT_USERS_KEY).strip() or DEFAULT_USERS_KEY,
    )
    logger.info("report service ready backend=%s locations=%d", record_store.backend_name, len(service.catalog))
    return service
