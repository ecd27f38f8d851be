from classwall.errors import PermissionDeniedError, StoreError
from classwall.firestore_models import ClassSection, Identity
from classwall.membership import MembershipResolver

STUDENT = Identity(id='U1', display_name='Ana', role='student')
INSTRUCTOR = Identity(id='T1', display_name='Prof. Cuestas', role='instructor')


def test_student_membership_comes_from_rosters(repo):
    resolver = MembershipResolver(repo)
    assert resolver.resolve(STUDENT) == {ClassSection('C1', 'Programming', 'A')}
    assert repo.calls == ['classes_enrolled']


def test_instructor_membership_comes_from_created_classes(repo):
    resolver = MembershipResolver(repo)
    assert resolver.resolve(INSTRUCTOR) == {
        ClassSection('C1', 'Programming', 'A'),
        ClassSection('C2', 'Programming', 'B'),
    }
    assert repo.calls == ['classes_created_by']


def test_no_viewer_has_no_membership(repo):
    assert MembershipResolver(repo).resolve(None) == frozenset()
    assert repo.calls == []


def test_permission_error_degrades_to_empty(repo):
    repo.fail('classes_enrolled', PermissionDeniedError('denied'))
    assert MembershipResolver(repo).resolve(STUDENT) == frozenset()


def test_store_error_degrades_to_empty(repo):
    repo.fail('classes_enrolled', StoreError('unavailable'))
    resolver = MembershipResolver(repo)
    assert resolver.refresh(STUDENT) == frozenset()
    assert resolver.current == frozenset()


def test_refresh_applies_result(repo):
    resolver = MembershipResolver(repo)
    resolver.refresh(STUDENT)
    assert resolver.current == {ClassSection('C1', 'Programming', 'A')}


def test_role_switch_invalidates_before_lookup(repo):
    resolver = MembershipResolver(repo)
    resolver.refresh(STUDENT)
    seen = []
    repo.hooks['classes_created_by'] = lambda: seen.append(resolver.current)

    resolver.refresh(Identity(id='U1', display_name='Ana', role='instructor'))

    assert seen == [frozenset()]
    assert resolver.current == frozenset()


def test_newer_refresh_supersedes_in_flight_one(repo):
    resolver = MembershipResolver(repo)
    # While the student lookup is in flight, the viewer becomes the instructor
    repo.hooks['classes_enrolled'] = lambda: resolver.refresh(INSTRUCTOR)

    assert resolver.refresh(STUDENT) is None
    assert resolver.current == {
        ClassSection('C1', 'Programming', 'A'),
        ClassSection('C2', 'Programming', 'B'),
    }


def test_invalidate_discards_in_flight_result(repo):
    resolver = MembershipResolver(repo)
    repo.hooks['classes_enrolled'] = resolver.invalidate
    assert resolver.refresh(STUDENT) is None
    assert resolver.current == frozenset()
