from flask import Blueprint, current_app, g, request
from classwall.decorators import auth_required
from classwall.errors import OwnershipError, ValidationError
from classwall.firestore_models import comment_view, post_view
from classwall.forms import CommentForm, PostForm, parse_sections
from classwall.services.storage import upload_attachment, upload_attachments

bp = Blueprint('wall', __name__, url_prefix='/wall')


@bp.errorhandler(ValidationError)
def handle_validation_error(error):
    return {'error': str(error)}, 400


@bp.errorhandler(OwnershipError)
def handle_ownership_error(error):
    return {'error': str(error)}, 403


def _result(result, status=200):
    body = {'id': result.ref.value if result.ref else None, 'ok': result.ok}
    if result.warning:
        body['warning'] = result.warning.message
    return body, status


def _form_errors(form):
    return {'error': 'Invalid submission', 'fields': form.errors}, 400


def _post_media(form, owner_id):
    """Upload picked media; returns (image_uri, attachments)."""
    picked = [f for f in (form.files.data or []) if f and f.filename]
    image = form.image.data if form.image.data and form.image.data.filename else None
    if not picked and image is None:
        return None, []
    bucket = current_app.extensions['classwall'].backend.bucket
    image_uri = upload_attachment(bucket, owner_id, image).uri if image is not None else None
    return image_uri, upload_attachments(bucket, owner_id, picked)


@bp.route('/')
@auth_required
def index():
    wall = g.current_wall
    viewer_id = wall.viewer.id
    return {'posts': [post_view(p, viewer_id) for p in wall.visible_posts()]}


@bp.route('/posts', methods=['POST'])
@auth_required
def create_post():
    wall = g.current_wall
    form = PostForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    image, files = _post_media(form, wall.viewer.id)
    result = wall.create_post(
        form.message.data or '',
        audience=form.audience.data,
        selected_sections=parse_sections(request.form.getlist('sections')),
        image=image,
        files=files,
        is_announcement=form.is_announcement.data,
    )
    return _result(result, 201)


@bp.route('/posts/<post_id>/edit', methods=['POST'])
@auth_required
def edit_post(post_id):
    wall = g.current_wall
    form = PostForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    post = wall.get_post(post_id)
    image, files = _post_media(form, wall.viewer.id)
    if post is not None and not request.form.get('replace_media'):
        # Keep existing media unless new media was picked
        image = image or post.image
        files = files or list(post.files)
    result = wall.edit_post(
        post_id,
        form.message.data or '',
        audience=form.audience.data,
        selected_sections=parse_sections(request.form.getlist('sections')),
        image=image,
        files=files,
    )
    return _result(result)


@bp.route('/posts/<post_id>/delete', methods=['POST'])
@auth_required
def delete_post(post_id):
    return _result(g.current_wall.delete_post(post_id))


@bp.route('/posts/<post_id>/like', methods=['POST'])
@auth_required
def like_post(post_id):
    wall = g.current_wall
    body, status = _result(wall.toggle_like(post_id))
    post = wall.get_post(post_id)
    if post is not None:
        body['likes'] = post.likes
        body['liked'] = wall.viewer.id in post.liked_by
    return body, status


@bp.route('/posts/<post_id>/comments')
@auth_required
def list_comments(post_id):
    comments = g.current_wall.open_comments(post_id)
    return {'comments': [comment_view(c) for c in comments]}


@bp.route('/posts/<post_id>/comments', methods=['POST'])
@auth_required
def add_comment(post_id):
    wall = g.current_wall
    form = CommentForm()
    if not form.validate_on_submit():
        return _form_errors(form)
    body, status = _result(wall.add_comment(post_id, form.message.data), 201)
    post = wall.get_post(post_id)
    if post is not None:
        body['comments'] = post.comments
    return body, status
