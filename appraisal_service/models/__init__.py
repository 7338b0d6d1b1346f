from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.audit_event import AuditEvent
from appraisal_service.models.competency import Competency
from appraisal_service.models.employee import Employee
from appraisal_service.models.goal import Goal
from appraisal_service.models.goal_template import GoalTemplate, TemplateMetric
from appraisal_service.models.idempotency import IdempotencyKey
from appraisal_service.models.notification_event import NotificationEvent
from appraisal_service.models.rbac import Role, UserRole
from appraisal_service.models.review import Review, ReviewRating
from appraisal_service.models.user import User

__all__ = [ "Appraisal", "AppraisalCycle", "AuditEvent", "Competency",
           "Employee", "Goal", "GoalTemplate", "TemplateMetric",
           "IdempotencyKey", "NotificationEvent", "Role", "UserRole",
           "Review", "ReviewRating", "User" ]
