from flask_wtf import FlaskForm
from flask_wtf.file import FileField, MultipleFileField
from wtforms import TextAreaField, SelectField, BooleanField, StringField, SubmitField
from wtforms.validators import DataRequired, Length, Optional

AUDIENCE_CHOICES = [('World', 'World'), ('Class', 'Class'), ('OnlyMe', 'Only Me')]


def parse_sections(values):
    """Turn submitted "classId:section" values into section maps."""
    sections = []
    for value in values or []:
        class_id, sep, section = value.partition(':')
        if sep and class_id.strip():
            sections.append({'classId': class_id.strip(), 'section': section.strip()})
        elif value.strip():
            # "<className> - <section>" label from older clients
            sections.append(value.strip())
    return sections


class PostForm(FlaskForm):
    message = TextAreaField('Message', validators=[Optional(), Length(max=5000, message='Keep posts under 5000 characters')])
    audience = SelectField('Audience', choices=AUDIENCE_CHOICES, default='World')
    image = FileField('Image')
    files = MultipleFileField('Files')
    is_announcement = BooleanField('Announcement')
    submit = SubmitField('Post')


class CommentForm(FlaskForm):
    message = TextAreaField('Comment', validators=[DataRequired(message='Please enter a comment'), Length(max=2000)])
    submit = SubmitField('Comment')


class SessionForm(FlaskForm):
    id_token = StringField('ID token', validators=[DataRequired(message='Missing ID token')])
    display_name = StringField('Display name', validators=[Optional(), Length(max=100)])
