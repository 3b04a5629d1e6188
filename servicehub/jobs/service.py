"""Job post and application workflow.

Posts are visible as soon as they are created; there is no admin gate. Any
provider may apply to any post, once. The owning customer approves or rejects
each application.

Application uniqueness is enforced by the ``(job_post_id, provider_id)``
unique index at insert time, and status transitions are compare-and-swap
updates on the status that was read, so concurrent requests cannot both win.
"""

from typing import Any, Mapping

from ..auth import Identity, check_roles
from ..clock import utc_now
from ..database import JOB_APPLICATIONS_TABLE, JOB_POSTS_TABLE, SERVICES_TABLE, Store
from ..errors import ConflictError, DuplicateKeyError, Forbidden, NotFoundError
from ..logging_config import get_logger
from ..models import Role
from ..query import QueryResult, run_query
from .models import ApplicationStatus, JobPost, JobPostCreate, JobPostUpdate

logger = get_logger("servicehub.jobs")

SEARCH_FIELDS = ("title", "description", "location", "duration")
FILTER_FIELDS = ("service_id", "customer_id", "title", "location", "duration")
SORT_FIELDS = ("created_at", "updated_at", "title", "location", "duration")


class JobPostService:
    """Job post operations over a record store."""

    def __init__(self, db: Store):
        self.db = db

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_post(self, post_id: str) -> dict:
        post = self.db.get(JOB_POSTS_TABLE, post_id)
        if not post:
            raise NotFoundError("Job post not found")
        return post

    def _ensure_service(self, service_id: str) -> None:
        if not self.db.get(SERVICES_TABLE, service_id):
            raise NotFoundError("Service not found")

    def _ensure_owner(self, actor: Identity, post: dict, action: str) -> None:
        if actor.role is Role.customer and post["customer_id"] != actor.id:
            raise Forbidden(f"You can only {action} your own job posts")

    def _view(self, post: dict) -> dict:
        applications = self.db.find(JOB_APPLICATIONS_TABLE, {"job_post_id": post["id"]})
        # Oldest application first
        applications.reverse()
        return JobPost.model_validate({**post, "applications": applications}).model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    def create(self, actor: Identity, request: JobPostCreate) -> dict:
        check_roles(actor, [Role.customer])
        self._ensure_service(request.service_id)

        post = self.db.insert(
            JOB_POSTS_TABLE,
            {
                "customer_id": actor.id,
                "service_id": request.service_id,
                "title": request.title,
                "description": request.description,
                "duration": request.duration,
                "location": request.location,
            },
        )
        logger.info(f"Job post created | id={post['id']} | customer={actor.id}")
        return self._view(post)

    def get(self, actor: Identity, post_id: str) -> dict:
        post = self._get_post(post_id)
        self._ensure_owner(actor, post, "view")
        return self._view(post)

    def list_posts(self, actor: Identity, params: Mapping[str, Any]) -> QueryResult:
        """Customers see their own posts; providers and admins see all."""
        default_filters = {"customer_id": actor.id} if actor.role is Role.customer else None
        result = run_query(
            self.db,
            JOB_POSTS_TABLE,
            params,
            SEARCH_FIELDS,
            default_filters,
            filter_fields=FILTER_FIELDS,
            sort_fields=SORT_FIELDS,
        )
        result.data = [self._view(post) for post in result.data]
        return result

    def update(self, actor: Identity, post_id: str, request: JobPostUpdate) -> dict:
        check_roles(actor, [Role.customer, Role.admin])
        post = self._get_post(post_id)
        self._ensure_owner(actor, post, "update")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "service_id" in changes and changes["service_id"] != post["service_id"]:
            self._ensure_service(changes["service_id"])
        if not changes:
            return self._view(post)

        updated = self.db.update(JOB_POSTS_TABLE, post_id, changes)
        if not updated:
            raise NotFoundError("Job post not found")
        logger.info(f"Job post updated | id={post_id} | by={actor.id} | fields={sorted(changes)}")
        return self._view(updated)

    def delete(self, actor: Identity, post_id: str) -> None:
        """Remove the post and every application on it."""
        check_roles(actor, [Role.customer, Role.admin])
        post = self._get_post(post_id)
        self._ensure_owner(actor, post, "delete")

        removed = self.db.delete_where(JOB_APPLICATIONS_TABLE, {"job_post_id": post_id})
        self.db.delete(JOB_POSTS_TABLE, post_id)
        logger.info(f"Job post deleted | id={post_id} | by={actor.id} | applications={removed}")

    # -------------------------------------------------------------------------
    # Applications
    # -------------------------------------------------------------------------

    def apply(self, actor: Identity, post_id: str) -> dict:
        check_roles(actor, [Role.provider])
        self._get_post(post_id)

        try:
            application = self.db.insert(
                JOB_APPLICATIONS_TABLE,
                {
                    "job_post_id": post_id,
                    "provider_id": actor.id,
                    "status": ApplicationStatus.applied.value,
                    "applied_at": utc_now(),
                },
            )
        except DuplicateKeyError:
            raise ConflictError("You have already applied to this job post")

        logger.info(f"Application created | id={application['id']} | post={post_id} | provider={actor.id}")
        return self._view(self._get_post(post_id))

    def approve_application(self, actor: Identity, post_id: str, application_id: str) -> dict:
        return self._transition(actor, post_id, application_id, ApplicationStatus.approved)

    def reject_application(self, actor: Identity, post_id: str, application_id: str) -> dict:
        return self._transition(actor, post_id, application_id, ApplicationStatus.rejected)

    def _transition(
        self,
        actor: Identity,
        post_id: str,
        application_id: str,
        target: ApplicationStatus,
    ) -> dict:
        check_roles(actor, [Role.customer])
        post = self._get_post(post_id)
        if post["customer_id"] != actor.id:
            raise Forbidden("Only the owner of this job post can manage its applications")

        application = self.db.find_one(JOB_APPLICATIONS_TABLE, {"id": application_id, "job_post_id": post_id})
        if not application:
            raise NotFoundError("Application not found")

        observed = application["status"]
        if observed == target.value:
            raise ConflictError(f"Application is already {target.value.lower()}")

        updated = self.db.update(
            JOB_APPLICATIONS_TABLE,
            application_id,
            {"status": target.value},
            expected={"job_post_id": post_id, "status": observed},
        )
        if not updated:
            current = self.db.get(JOB_APPLICATIONS_TABLE, application_id)
            if not current:
                raise NotFoundError("Application not found")
            logger.warning(
                f"Concurrent change on application {application_id}: "
                f"expected status '{observed}', found '{current['status']}'"
            )
            raise ConflictError(f"Application is already {current['status'].lower()}")

        logger.info(f"Application {target.value.lower()} | id={application_id} | post={post_id} | by={actor.id}")
        return self._view(post)
