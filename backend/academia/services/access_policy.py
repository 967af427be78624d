"""
Access Policy
=============

One decision function, `authorize(actor, action, resource)`, answers every
"may this user do this?" question in the application. Endpoints and
services build a `Resource` descriptor for what they are about to touch and
call `require(...)`; none of them compare roles on their own.

The actor is always passed in explicitly. There is no module-level or
request-global "current user".

Rules, in priority order:

1. Missing or inactive actor: deny.
2. Admin: allow.
3. HOD: allow only when the resource resolves to the HOD's department.
   Departments themselves are read-only for an HOD and users may only be
   read, except the HOD's own record.
4. Teacher: grades they entered or that belong to a subject they teach;
   read of subjects they teach, of students in their department and of
   their own department.
5. Student: read-only, limited to their own published grades, their own
   record and reports, and the subjects and department they belong to.

Any actor may update its own user record; the user service limits which
fields that covers.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from academia.core.exceptions import AuthenticationError, AuthorizationError
from academia.core.logging_config import logger
from academia.models.user import UserRole


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"


class ResourceKind(str, enum.Enum):
    USER = "user"
    DEPARTMENT = "department"
    SUBJECT = "subject"
    GRADE = "grade"
    REPORT = "report"


@dataclass(frozen=True)
class Actor:
    """The authenticated user a request acts on behalf of"""
    id: str
    role: UserRole
    department_id: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            role=UserRole(user.role),
            department_id=user.department_id,
            is_active=bool(user.is_active),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class Resource:
    """
    What an action targets, reduced to the attributes the rules look at.

    department_id is the department the resource resolves to: the
    department itself, a user's or subject's department, or a grade's
    subject's department.
    """
    kind: ResourceKind
    id: Optional[str] = None
    department_id: Optional[str] = None
    owner_id: Optional[str] = None
    owner_role: Optional[UserRole] = None
    student_id: Optional[str] = None
    teacher_id: Optional[str] = None
    subject_teacher_id: Optional[str] = None
    is_published: bool = False


# ============================================
# Role handlers
# ============================================

def _same_department(actor: Actor, resource: Resource) -> bool:
    return actor.department_id is not None and resource.department_id == actor.department_id


def _is_self(actor: Actor, resource: Resource) -> bool:
    return resource.kind == ResourceKind.USER and resource.owner_id == actor.id


def _admin_rules(actor: Actor, action: Action, resource: Resource) -> bool:
    return True


def _hod_rules(actor: Actor, action: Action, resource: Resource) -> bool:
    if not _same_department(actor, resource):
        return False

    if resource.kind == ResourceKind.DEPARTMENT:
        return action == Action.READ
    if resource.kind == ResourceKind.USER:
        return action == Action.READ
    return True


def _teacher_rules(actor: Actor, action: Action, resource: Resource) -> bool:
    teaches_subject = resource.subject_teacher_id == actor.id

    if resource.kind == ResourceKind.GRADE:
        if action == Action.CREATE:
            return teaches_subject
        if action in (Action.READ, Action.UPDATE, Action.PUBLISH):
            return teaches_subject or resource.teacher_id == actor.id
        return False

    if action != Action.READ:
        return False

    if resource.kind == ResourceKind.SUBJECT:
        return resource.teacher_id == actor.id
    if resource.kind == ResourceKind.USER:
        return resource.owner_role == UserRole.STUDENT and _same_department(actor, resource)
    if resource.kind == ResourceKind.DEPARTMENT:
        return _same_department(actor, resource)
    if resource.kind == ResourceKind.REPORT:
        # Subject reports for subjects they teach, student reports within their department
        if resource.subject_teacher_id is not None:
            return teaches_subject
        return resource.owner_id is not None and _same_department(actor, resource)
    return False


def _student_rules(actor: Actor, action: Action, resource: Resource) -> bool:
    if action != Action.READ:
        return False

    if resource.kind == ResourceKind.GRADE:
        return resource.student_id == actor.id and resource.is_published
    if resource.kind == ResourceKind.REPORT:
        return resource.owner_id == actor.id and resource.subject_teacher_id is None
    if resource.kind in (ResourceKind.SUBJECT, ResourceKind.DEPARTMENT):
        return _same_department(actor, resource)
    return False


_ROLE_RULES: Dict[UserRole, Callable[[Actor, Action, Resource], bool]] = {
    UserRole.ADMIN: _admin_rules,
    UserRole.HOD: _hod_rules,
    UserRole.TEACHER: _teacher_rules,
    UserRole.STUDENT: _student_rules,
}


# ============================================
# Public API
# ============================================

def authorize(actor: Optional[Actor], action: Action, resource: Resource) -> bool:
    """Decide whether `actor` may perform `action` on `resource`. Pure."""
    if actor is None or not actor.is_active:
        return False

    if _is_self(actor, resource) and action in (Action.READ, Action.UPDATE):
        return True

    rules = _ROLE_RULES.get(actor.role)
    if rules is None:
        return False
    return rules(actor, action, resource)


def require(actor: Optional[Actor], action: Action, resource: Resource) -> None:
    """
    Raise unless `authorize` allows the action.

    AuthenticationError for a missing or inactive actor, AuthorizationError
    otherwise.
    """
    if actor is None or not actor.is_active:
        logger.log_access_decision(
            actor.id if actor else None, None, action.value, resource.kind.value, False,
            resource_id=resource.id,
        )
        raise AuthenticationError()

    allowed = authorize(actor, action, resource)
    logger.log_access_decision(
        actor.id, actor.role.value, action.value, resource.kind.value, allowed,
        resource_id=resource.id,
    )
    if not allowed:
        raise AuthorizationError(
            f"Not authorized to {action.value} this {resource.kind.value}",
            details={"action": action.value, "resource": resource.kind.value,
                     "resource_id": resource.id},
        )


def require_all(actor: Optional[Actor], action: Action, resources: Iterable[Resource]) -> None:
    """All-or-nothing check for bulk requests: the first denial fails the whole request"""
    for resource in resources:
        require(actor, action, resource)


def require_role(actor: Optional[Actor], *roles: UserRole) -> None:
    """
    Guard for collection-level operations that have no single target,
    such as creating a department.
    """
    if actor is None or not actor.is_active:
        raise AuthenticationError()
    if actor.role not in roles:
        logger.log_access_decision(actor.id, actor.role.value, "invoke", "operation", False)
        raise AuthorizationError(
            f"Requires role: {', '.join(r.value for r in roles)}"
        )


# ============================================
# Descriptor builders
# ============================================

def describe_user(user) -> Resource:
    return Resource(
        kind=ResourceKind.USER,
        id=user.id,
        department_id=user.department_id,
        owner_id=user.id,
        owner_role=UserRole(user.role),
    )


def describe_new_user(role: UserRole, department_id: Optional[str]) -> Resource:
    return Resource(kind=ResourceKind.USER, department_id=department_id, owner_role=role)


def describe_department(department) -> Resource:
    return Resource(kind=ResourceKind.DEPARTMENT, id=department.id, department_id=department.id)


def describe_subject(subject) -> Resource:
    return Resource(
        kind=ResourceKind.SUBJECT,
        id=subject.id,
        department_id=subject.department_id,
        teacher_id=subject.teacher_id,
        subject_teacher_id=subject.teacher_id,
    )


def describe_new_subject(department_id: str) -> Resource:
    return Resource(kind=ResourceKind.SUBJECT, department_id=department_id)


def describe_grade(grade, subject) -> Resource:
    """A stored grade; its department is the subject's department"""
    return Resource(
        kind=ResourceKind.GRADE,
        id=grade.id,
        department_id=subject.department_id,
        student_id=grade.student_id,
        teacher_id=grade.teacher_id,
        subject_teacher_id=subject.teacher_id,
        is_published=bool(grade.is_published),
    )


def describe_new_grade(subject, student_id: str) -> Resource:
    return Resource(
        kind=ResourceKind.GRADE,
        department_id=subject.department_id,
        student_id=student_id,
        subject_teacher_id=subject.teacher_id,
    )


def describe_report(department_id: Optional[str] = None, student_id: Optional[str] = None,
                    subject_teacher_id: Optional[str] = None) -> Resource:
    """
    Read-only report. A report with no department, student or subject
    teacher is institution-wide and only an admin passes.
    """
    return Resource(
        kind=ResourceKind.REPORT,
        department_id=department_id,
        owner_id=student_id,
        subject_teacher_id=subject_teacher_id,
    )
