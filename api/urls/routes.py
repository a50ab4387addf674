"""URL pattern and redirect API routes."""

from flask import Blueprint, request

from api.common import load_json, success
from core.exceptions import CmsError
from services.authorization_service import permission_required
from services.locale_service import LocaleService
from services.post_types import post_type_registry
from services.url_pattern_service import UrlPatternService
from .schemas import pattern_schema, pattern_update_schema, redirect_schema, redirect_update_schema

urls_api = Blueprint('urls', __name__, url_prefix='/urls')


@urls_api.route('/patterns', methods=['GET'])
@permission_required('urls.view')
def list_patterns():
    patterns = UrlPatternService.list_patterns(request.args.get('post_type'), request.args.get('locale'))
    return success([pattern.to_dict() for pattern in patterns])


@urls_api.route('/patterns', methods=['POST'])
@permission_required('urls.edit')
def create_pattern():
    """
    Add a URL pattern such as ``/{locale}/blog/{slug}``.

    Returns:
        201 CREATED: The pattern
        400 BAD REQUEST: Unknown post type, unsupported locale or invalid tokens
    """
    data = load_json(pattern_schema)
    post_type_registry.require(data['post_type'])
    LocaleService.require_supported(data['locale'])
    pattern = UrlPatternService.create_pattern(**data)
    return success(pattern.to_dict(), 201)


@urls_api.route('/patterns/<int:pattern_id>', methods=['PATCH', 'PUT'])
@permission_required('urls.edit')
def update_pattern(pattern_id: int):
    data = load_json(pattern_update_schema)
    return success(UrlPatternService.update_pattern(pattern_id, **data).to_dict())


@urls_api.route('/patterns/<int:pattern_id>', methods=['DELETE'])
@permission_required('urls.edit')
def delete_pattern(pattern_id: int):
    UrlPatternService.delete_pattern(pattern_id)
    return success(None, message="URL pattern deleted")


@urls_api.route('/match', methods=['GET'])
@permission_required('urls.view')
def match_path():
    path = request.args.get('path')
    if not path:
        raise CmsError("path is required", status_code=400)
    return success(UrlPatternService.match_path(path))


@urls_api.route('/redirects', methods=['GET'])
@permission_required('urls.view')
def list_redirects():
    redirects = UrlPatternService.list_redirects(request.args.get('locale'))
    return success([redirect.to_dict() for redirect in redirects])


@urls_api.route('/redirects', methods=['POST'])
@permission_required('urls.edit')
def create_redirect():
    data = load_json(redirect_schema)
    return success(UrlPatternService.create_redirect(**data).to_dict(), 201)


@urls_api.route('/redirects/<int:redirect_id>', methods=['PATCH', 'PUT'])
@permission_required('urls.edit')
def update_redirect(redirect_id: int):
    data = load_json(redirect_update_schema)
    return success(UrlPatternService.update_redirect(redirect_id, **data).to_dict())


@urls_api.route('/redirects/<int:redirect_id>', methods=['DELETE'])
@permission_required('urls.edit')
def delete_redirect(redirect_id: int):
    UrlPatternService.delete_redirect(redirect_id)
    return success(None, message="Redirect deleted")
