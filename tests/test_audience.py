from classwall.audience import is_visible, visible_posts
from classwall.firestore_models import (
    Audience, ClassSection, ConfirmedId, Identity, Post, SectionRef,
)

U1 = Identity(id='U1', display_name='Ana')
U2 = Identity(id='U2', display_name='Ben')
U3 = Identity(id='U3', display_name='Cy')

C1_A = ClassSection('C1', 'Programming', 'A')
C1_B = ClassSection('C1', 'Programming', 'B')


def _class_post(*sections, author_id='U1', **fields):
    return Post(ref=ConfirmedId('p1'), author_id=author_id, message='hi',
                audience=Audience.CLASS, selected_sections=tuple(sections), **fields)


class TestWorld:

    def test_missing_audience_is_visible_to_everyone(self):
        post = Post(author_id='U1', audience=None)
        assert is_visible(post, U2, [])
        assert is_visible(post, None, [])

    def test_world_is_visible_regardless_of_membership(self):
        post = Post(author_id='U1', audience='World')
        assert is_visible(post, U3, [C1_B])


class TestOnlyMe:

    def test_only_author_sees_it(self):
        post = Post(author_id='U1', audience=Audience.ONLY_ME)
        assert is_visible(post, U1, [])
        assert not is_visible(post, U2, [C1_A])

    def test_legacy_spelling(self):
        post = Post(author_id='U1', audience='Only Me')
        assert not is_visible(post, U2, [])

    def test_signed_out_viewer_sees_nothing_private(self):
        assert not is_visible(Post(author_id='U1', audience=Audience.ONLY_ME), None, [])


class TestClass:

    def test_member_of_matching_section_sees_it(self):
        post = _class_post(SectionRef('C1', 'A'))
        assert is_visible(post, U2, [C1_A])

    def test_other_section_of_same_class_does_not(self):
        post = _class_post(SectionRef('C1', 'A'))
        assert not is_visible(post, U3, [C1_B])

    def test_author_always_sees_own_post(self):
        post = _class_post(SectionRef('C1', 'A'))
        assert is_visible(post, U1, [])

    def test_untagged_class_post_is_open(self):
        assert is_visible(_class_post(), U3, [])

    def test_any_matching_section_is_enough(self):
        post = _class_post(SectionRef('C9', 'Z'), SectionRef('C1', 'B'))
        assert is_visible(post, U3, [C1_B])

    def test_legacy_label_sections(self):
        post = _class_post(SectionRef(label='Programming - A'))
        assert is_visible(post, U2, [C1_A])
        assert not is_visible(post, U3, [C1_B])

    def test_legacy_classmates_audience(self):
        post = Post(author_id='U1', audience='Classmates', selected_sections=(SectionRef('C1', 'A'),))
        assert not is_visible(post, U3, [C1_B])

    def test_announcement_matches_by_class_and_section(self):
        post = _class_post(SectionRef.from_value({'id': 'C1', 'section': 'A'}), is_announcement=True)
        assert is_visible(post, U2, [C1_A])
        assert not is_visible(post, U3, [C1_B])


def test_unknown_audience_fails_open():
    post = Post(author_id='U1', audience='Friends')
    assert is_visible(post, U3, [])


def test_visible_posts_filters_list_in_order():
    posts = [
        Post(ref=ConfirmedId('a'), author_id='U1', audience=Audience.WORLD),
        Post(ref=ConfirmedId('b'), author_id='U1', audience=Audience.ONLY_ME),
        Post(ref=ConfirmedId('c'), author_id='U1', audience=Audience.CLASS,
             selected_sections=(SectionRef('C1', 'A'),)),
    ]
    assert [p.id for p in visible_posts(posts, U2, [C1_A])] == ['a', 'c']
    assert [p.id for p in visible_posts(posts, U3, iter([C1_B]))] == ['a']
