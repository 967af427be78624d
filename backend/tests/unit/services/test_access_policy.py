"""
Unit Tests for the Access Policy
Tests for: authorize() decisions per role, require() error types, descriptor builders
"""
from types import SimpleNamespace

import pytest

from academia.core.exceptions import AuthenticationError, AuthorizationError
from academia.models.user import UserRole
from academia.services.access_policy import (
    Action,
    Actor,
    Resource,
    ResourceKind,
    authorize,
    describe_department,
    describe_grade,
    describe_new_grade,
    describe_new_subject,
    describe_new_user,
    describe_report,
    describe_subject,
    describe_user,
    require,
    require_all,
    require_role,
)

CSE = "dept-cse"
ECE = "dept-ece"

ADMIN = Actor(id="admin-1", role=UserRole.ADMIN)
HOD = Actor(id="hod-1", role=UserRole.HOD, department_id=CSE)
TEACHER = Actor(id="teacher-1", role=UserRole.TEACHER, department_id=CSE)
OTHER_TEACHER = Actor(id="teacher-2", role=UserRole.TEACHER, department_id=CSE)
STUDENT = Actor(id="student-1", role=UserRole.STUDENT, department_id=CSE)


def _subject(department_id=CSE, teacher_id="teacher-1", id="subject-1"):
    return SimpleNamespace(id=id, department_id=department_id, teacher_id=teacher_id)


def _grade(student_id="student-1", teacher_id="teacher-1", is_published=False, id="grade-1"):
    return SimpleNamespace(id=id, student_id=student_id, teacher_id=teacher_id,
                           is_published=is_published)


def _user(id, role, department_id=CSE):
    return SimpleNamespace(id=id, role=role, department_id=department_id)


class TestActor:

    def test_from_user(self):
        user = SimpleNamespace(id="u1", role="hod", department_id=CSE, is_active=True)
        actor = Actor.from_user(user)

        assert actor == Actor(id="u1", role=UserRole.HOD, department_id=CSE, is_active=True)
        assert actor.is_admin is False

    def test_actor_is_immutable(self):
        with pytest.raises(Exception):
            ADMIN.role = UserRole.STUDENT


class TestMissingOrInactiveActor:

    @pytest.mark.parametrize("action", list(Action))
    def test_none_actor_denied(self, action):
        assert authorize(None, action, describe_report()) is False

    def test_inactive_admin_denied(self):
        inactive = Actor(id="admin-2", role=UserRole.ADMIN, is_active=False)
        assert authorize(inactive, Action.READ, describe_department(SimpleNamespace(id=CSE))) is False

    def test_require_raises_authentication_error(self):
        with pytest.raises(AuthenticationError):
            require(None, Action.READ, describe_report())


class TestAdmin:

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_allowed_everything(self, action):
        for resource in (
            describe_grade(_grade(), _subject(department_id=ECE)),
            describe_subject(_subject(department_id=ECE)),
            describe_department(SimpleNamespace(id=ECE)),
            describe_user(_user("x", UserRole.HOD, ECE)),
            describe_report(),
        ):
            assert authorize(ADMIN, action, resource) is True


class TestHOD:

    def test_grades_in_own_department(self):
        resource = describe_grade(_grade(), _subject(teacher_id="someone-else"))
        for action in (Action.READ, Action.UPDATE, Action.DELETE, Action.PUBLISH):
            assert authorize(HOD, action, resource) is True

    def test_cross_department_denied(self):
        resource = describe_grade(_grade(), _subject(department_id=ECE))
        for action in Action:
            assert authorize(HOD, action, resource) is False

    def test_create_subject_in_own_department_only(self):
        assert authorize(HOD, Action.CREATE, describe_new_subject(CSE)) is True
        assert authorize(HOD, Action.CREATE, describe_new_subject(ECE)) is False

    def test_department_is_read_only(self):
        department = describe_department(SimpleNamespace(id=CSE))
        assert authorize(HOD, Action.READ, department) is True
        assert authorize(HOD, Action.UPDATE, department) is False
        assert authorize(HOD, Action.DELETE, department) is False

    def test_cannot_create_users(self):
        assert authorize(HOD, Action.CREATE, describe_new_user(UserRole.STUDENT, CSE)) is False

    def test_reads_department_users(self):
        assert authorize(HOD, Action.READ, describe_user(_user("s9", UserRole.STUDENT))) is True
        assert authorize(HOD, Action.READ, describe_user(_user("s9", UserRole.STUDENT, ECE))) is False

    def test_department_report(self):
        assert authorize(HOD, Action.READ, describe_report(department_id=CSE)) is True
        assert authorize(HOD, Action.READ, describe_report(department_id=ECE)) is False
        assert authorize(HOD, Action.READ, describe_report()) is False

    def test_hod_without_department_denied(self):
        orphan = Actor(id="hod-2", role=UserRole.HOD, department_id=None)
        resource = describe_grade(_grade(), _subject(department_id=None))
        assert authorize(orphan, Action.READ, resource) is False


class TestTeacher:

    def test_create_grade_only_on_taught_subject(self):
        assert authorize(TEACHER, Action.CREATE, describe_new_grade(_subject(), "student-1")) is True
        assert authorize(OTHER_TEACHER, Action.CREATE, describe_new_grade(_subject(), "student-1")) is False

    def test_grade_access_via_subject_assignment(self):
        resource = describe_grade(_grade(teacher_id="teacher-9"), _subject())
        for action in (Action.READ, Action.UPDATE, Action.PUBLISH):
            assert authorize(TEACHER, action, resource) is True

    def test_grade_access_via_entry_ownership(self):
        resource = describe_grade(_grade(teacher_id="teacher-2"), _subject(teacher_id="teacher-9"))
        assert authorize(OTHER_TEACHER, Action.UPDATE, resource) is True
        assert authorize(TEACHER, Action.READ, resource) is False

    def test_cannot_delete_grades(self):
        resource = describe_grade(_grade(), _subject())
        assert authorize(TEACHER, Action.DELETE, resource) is False

    def test_subject_read_only_for_taught_subjects(self):
        taught = describe_subject(_subject())
        assert authorize(TEACHER, Action.READ, taught) is True
        assert authorize(TEACHER, Action.UPDATE, taught) is False
        assert authorize(OTHER_TEACHER, Action.READ, taught) is False

    def test_reads_students_of_own_department(self):
        assert authorize(TEACHER, Action.READ, describe_user(_user("s1", UserRole.STUDENT))) is True
        assert authorize(TEACHER, Action.READ, describe_user(_user("s2", UserRole.STUDENT, ECE))) is False
        assert authorize(TEACHER, Action.READ, describe_user(_user("t2", UserRole.TEACHER))) is False

    def test_reads_own_department(self):
        assert authorize(TEACHER, Action.READ, describe_department(SimpleNamespace(id=CSE))) is True
        assert authorize(TEACHER, Action.READ, describe_department(SimpleNamespace(id=ECE))) is False

    def test_subject_report_only_for_taught_subject(self):
        assert authorize(TEACHER, Action.READ,
                         describe_report(department_id=CSE, subject_teacher_id="teacher-1")) is True
        assert authorize(OTHER_TEACHER, Action.READ,
                         describe_report(department_id=CSE, subject_teacher_id="teacher-1")) is False

    def test_student_report_within_department(self):
        assert authorize(TEACHER, Action.READ,
                         describe_report(department_id=CSE, student_id="student-1")) is True
        assert authorize(TEACHER, Action.READ,
                         describe_report(department_id=ECE, student_id="student-7")) is False

    def test_department_report_denied(self):
        assert authorize(TEACHER, Action.READ, describe_report(department_id=CSE)) is False


class TestStudent:

    def test_reads_own_published_grade(self):
        assert authorize(STUDENT, Action.READ,
                         describe_grade(_grade(is_published=True), _subject())) is True

    def test_unpublished_grade_hidden(self):
        assert authorize(STUDENT, Action.READ,
                         describe_grade(_grade(is_published=False), _subject())) is False

    def test_other_students_grade_hidden(self):
        assert authorize(STUDENT, Action.READ,
                         describe_grade(_grade(student_id="student-2", is_published=True), _subject())) is False

    @pytest.mark.parametrize("action", [Action.CREATE, Action.UPDATE, Action.DELETE, Action.PUBLISH])
    def test_no_writes(self, action):
        assert authorize(STUDENT, action, describe_grade(_grade(is_published=True), _subject())) is False
        assert authorize(STUDENT, action, describe_subject(_subject())) is False

    def test_own_cgpa_report(self):
        assert authorize(STUDENT, Action.READ, describe_report(department_id=CSE, student_id="student-1")) is True
        assert authorize(STUDENT, Action.READ, describe_report(department_id=CSE, student_id="student-2")) is False

    def test_subject_report_denied(self):
        resource = describe_report(department_id=CSE, subject_teacher_id="teacher-1")
        assert authorize(STUDENT, Action.READ, resource) is False

    def test_reads_subjects_of_own_department(self):
        assert authorize(STUDENT, Action.READ, describe_subject(_subject())) is True
        assert authorize(STUDENT, Action.READ, describe_subject(_subject(department_id=ECE))) is False

    def test_cannot_read_other_users(self):
        assert authorize(STUDENT, Action.READ, describe_user(_user("student-2", UserRole.STUDENT))) is False


class TestSelfAccess:

    @pytest.mark.parametrize("actor", [HOD, TEACHER, STUDENT])
    def test_read_and_update_own_record(self, actor):
        me = describe_user(_user(actor.id, actor.role, actor.department_id))
        assert authorize(actor, Action.READ, me) is True
        assert authorize(actor, Action.UPDATE, me) is True
        assert authorize(actor, Action.DELETE, me) is False


class TestRequire:

    def test_denial_raises_authorization_error(self):
        with pytest.raises(AuthorizationError) as exc:
            require(STUDENT, Action.DELETE, describe_subject(_subject()))

        assert exc.value.status_code == 403
        assert exc.value.details["resource"] == "subject"

    def test_allowed_returns_none(self):
        assert require(ADMIN, Action.DELETE, describe_subject(_subject())) is None

    def test_require_all_fails_on_single_denial(self):
        resources = [
            describe_grade(_grade(id="g1"), _subject()),
            describe_grade(_grade(id="g2", teacher_id="teacher-9"), _subject(id="subject-2", teacher_id="teacher-9")),
        ]
        with pytest.raises(AuthorizationError) as exc:
            require_all(TEACHER, Action.PUBLISH, resources)

        assert exc.value.details["resource_id"] == "g2"

    def test_require_role(self):
        require_role(ADMIN, UserRole.ADMIN)
        with pytest.raises(AuthorizationError):
            require_role(HOD, UserRole.ADMIN)
        with pytest.raises(AuthenticationError):
            require_role(None, UserRole.ADMIN)


class TestDescriptors:

    def test_grade_resolves_to_subject_department(self):
        resource = describe_grade(_grade(), _subject(department_id=ECE))

        assert resource.kind == ResourceKind.GRADE
        assert resource.department_id == ECE
        assert resource.subject_teacher_id == "teacher-1"

    def test_institution_report_has_no_scope(self):
        assert describe_report() == Resource(kind=ResourceKind.REPORT)
