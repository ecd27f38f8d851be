from datetime import datetime, timezone

from classwall.firestore_models import (
    Attachment, Audience, ClassSection, ConfirmedId, Identity, PendingId, Post,
    SectionRef, as_ref, new_local_id, post_view,
)


def test_post_from_document():
    post = Post.from_dict({
        'authorId': 'U1',
        'author': 'Ana',
        'role': 'Student',
        'message': 'Midterm on Nov 5',
        'createdAt': {'seconds': 1761550200, 'nanoseconds': 0},
        'audience': 'Class',
        'selectedSections': [{'classId': 'C1', 'section': 'A'}],
        'likes': 7,
        'likedBy': ['U2', 'U3', 'U2'],
        'comments': 2,
        'files': [{'name': 'guide.pdf', 'size': 2048, 'type': 'application/pdf', 'uri': 'x/guide.pdf'}],
    }, 'p1')

    assert post.ref == ConfirmedId('p1')
    assert post.id == 'p1'
    assert post.audience is Audience.CLASS
    assert post.selected_sections == (SectionRef('C1', 'A'),)
    assert post.liked_by == ('U2', 'U3')
    assert post.likes == 2
    assert post.created_at == datetime(2025, 10, 27, 7, 30, tzinfo=timezone.utc)
    assert post.files == (Attachment('guide.pdf', 2048, 'application/pdf', 'x/guide.pdf'),)
    assert post.is_announcement is False


def test_legacy_shapes():
    post = Post.from_dict({
        'audience': 'Only Me',
        'selectedSections': ['Programming - A', {'id': 'C2', 'section': 'B'}],
        'createdAt': '2025-10-26T14:15:00Z',
    }, 'p2')
    assert post.audience is Audience.ONLY_ME
    assert post.selected_sections[0].label == 'Programming - A'
    assert post.selected_sections[1] == SectionRef('C2', 'B')
    assert post.created_at.tzinfo is not None


def test_unknown_audience_is_kept_raw():
    assert Post.from_dict({'audience': 'Friends'}).audience == 'Friends'
    assert Post.from_dict({}).audience is None


def test_to_dict_writes_derived_like_count():
    post = Post(author_id='U1', liked_by=('U2', 'U3'), audience=Audience.ONLY_ME,
                selected_sections=(SectionRef('C1', 'A'),))
    data = post.to_dict()
    assert data['likes'] == 2
    assert data['likedBy'] == ['U2', 'U3']
    assert data['audience'] == 'OnlyMe'
    assert data['selectedSections'] == [{'classId': 'C1', 'section': 'A'}]


def test_has_content():
    assert not Post(message='   ').has_content
    assert Post(image='img.jpg').has_content
    assert Post(files=(Attachment(name='a.pdf'),)).has_content


def test_refs():
    assert as_ref('p1') == ConfirmedId('p1')
    pending = PendingId(new_local_id())
    assert as_ref(pending) is pending
    assert pending.value.startswith('local_post_')
    assert Post(ref=pending).is_pending


def test_class_section_from_class_document():
    section = ClassSection.from_dict({'subject': 'Programming', 'section': 1}, 'C1')
    assert section == ClassSection('C1', 'Programming', '1')
    assert section.label == 'Programming - 1'


def test_identity_from_profile():
    identity = Identity.from_profile('T1', {'role': 'instructor', 'displayName': 'Prof', 'photoURL': 'a.png'})
    assert identity.is_instructor()
    assert identity.role_label == 'Instructor'
    assert identity.avatar == 'a.png'
    assert Identity.from_profile('U9', {'role': 'admin'}).role == 'student'


def test_post_view_marks_viewer_like():
    post = Post(ref=ConfirmedId('p1'), liked_by=('U1',), local_id='local_post_1')
    view = post_view(post, 'U1')
    assert view['id'] == 'p1'
    assert view['likedByViewer'] is True
    assert view['pending'] is False
    assert 'localId' not in view
