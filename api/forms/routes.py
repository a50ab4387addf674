"""Form API routes."""

from flask import Blueprint, Response, current_app, request

from extensions import limiter
from api.common import page_args, paginated, success
from core.exceptions import CmsError
from services.authorization_service import permission_required
from services.form_service import FormService, form_registry

forms_api = Blueprint('forms', __name__, url_prefix='/forms')


@forms_api.route('', methods=['GET'])
def list_forms():
    return success([form.to_dict() for form in form_registry.list()])


@forms_api.route('/submissions', methods=['GET'])
@permission_required('forms.view')
def list_all_submissions():
    return paginated(FormService.list_submissions(**page_args()))


@forms_api.route('/<string:slug>', methods=['GET'])
def get_form(slug: str):
    return success(form_registry.get(slug).to_dict())


@forms_api.route('/<string:slug>', methods=['POST'])
@limiter.limit("20/minute")
def submit_form(slug: str):
    """
    Submit a form.

    Request Body:
        Field values keyed by field slug, plus an optional ``post_id`` of
        the page the form was shown on (used for A/B conversion stats)

    Returns:
        201 CREATED: Submission id and the form's success message
        400 BAD REQUEST: Invalid values (per-field messages in ``meta.errors``)
        404 NOT FOUND: Unknown form
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form.to_dict()
    if not isinstance(payload, dict):
        raise CmsError("Request body must be a JSON object", status_code=400)

    post_id = payload.pop('post_id', None) or request.args.get('post_id')
    try:
        post_id = int(post_id) if post_id not in (None, '') else None
    except (TypeError, ValueError):
        raise CmsError("post_id must be an integer", status_code=400)

    submission = FormService.submit(slug, payload, {
        'ip_address': request.remote_addr,
        'user_agent': request.headers.get('User-Agent'),
        'post_id': post_id,
    })
    form = form_registry.get(slug)
    current_app.logger.debug("Form %s submitted from %s", slug, request.remote_addr)
    return success({'id': submission.id}, 201, message=form.success_message)


@forms_api.route('/<string:slug>/submissions', methods=['GET'])
@permission_required('forms.view')
def list_submissions(slug: str):
    form_registry.get(slug)
    return paginated(FormService.list_submissions(slug, **page_args()))


@forms_api.route('/<string:slug>/export', methods=['GET'])
@permission_required('forms.submissions.export')
def export_submissions(slug: str):
    """Every submission of a form as a CSV download."""
    csv_data = FormService.export_csv(slug)
    return Response(csv_data, mimetype='text/csv',
                    headers={'Content-Disposition': f'attachment; filename="{slug}-submissions.csv"'})
