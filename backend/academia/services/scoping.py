"""
Query scopes.

Listing and reporting queries are narrowed in SQL to what the actor could
read under the access policy, so rows outside the actor's reach are never
fetched.
"""

from typing import List, Optional

from sqlalchemy import and_, false, or_, select
from sqlalchemy.sql.elements import ColumnElement

from academia.models import Department, Grade, Subject, User, UserRole
from academia.services.access_policy import Actor


def _subjects_in_department(department_id: Optional[str]):
    return select(Subject.id).where(Subject.department_id == department_id)


def _subjects_taught_by(teacher_id: str):
    return select(Subject.id).where(Subject.teacher_id == teacher_id)


def grade_scope(actor: Optional[Actor]) -> List[ColumnElement]:
    """WHERE clauses limiting Grade rows to those the actor may read"""
    if actor is None or not actor.is_active:
        return [false()]
    if actor.role == UserRole.ADMIN:
        return []
    if actor.role == UserRole.HOD:
        return [Grade.subject_id.in_(_subjects_in_department(actor.department_id))]
    if actor.role == UserRole.TEACHER:
        return [or_(
            Grade.teacher_id == actor.id,
            Grade.subject_id.in_(_subjects_taught_by(actor.id)),
        )]
    if actor.role == UserRole.STUDENT:
        return [Grade.student_id == actor.id, Grade.is_published.is_(True)]
    return [false()]


def subject_scope(actor: Optional[Actor]) -> List[ColumnElement]:
    """WHERE clauses limiting Subject rows to those the actor may read"""
    if actor is None or not actor.is_active:
        return [false()]
    if actor.role == UserRole.ADMIN:
        return []
    if actor.role in (UserRole.HOD, UserRole.STUDENT):
        return [Subject.department_id == actor.department_id]
    if actor.role == UserRole.TEACHER:
        return [Subject.teacher_id == actor.id]
    return [false()]


def user_scope(actor: Optional[Actor]) -> List[ColumnElement]:
    """WHERE clauses limiting User rows to those the actor may read"""
    if actor is None or not actor.is_active:
        return [false()]
    if actor.role == UserRole.ADMIN:
        return []
    if actor.role == UserRole.HOD:
        return [or_(User.department_id == actor.department_id, User.id == actor.id)]
    if actor.role == UserRole.TEACHER:
        return [or_(
            User.id == actor.id,
            and_(User.role == UserRole.STUDENT, User.department_id == actor.department_id),
        )]
    return [User.id == actor.id]


def department_scope(actor: Optional[Actor]) -> List[ColumnElement]:
    """WHERE clauses limiting Department rows to those the actor may read"""
    if actor is None or not actor.is_active:
        return [false()]
    if actor.role == UserRole.ADMIN:
        return []
    return [Department.id == actor.department_id]
