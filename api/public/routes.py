"""Public API routes."""

from flask import Blueprint, request

from api.common import success
from core.exceptions import CmsError
from services.public_service import PublicService
from services.variation_service import VariationService

public_api = Blueprint('public', __name__, url_prefix='/public')


@public_api.route('/resolve', methods=['GET'])
def resolve():
    """
    Resolve a site path.

    Query Parameters:
        path: Path such as ``/es/blog/hola``
        track: ``0`` to skip counting an A/B view

    Returns:
        200 OK: ``{"kind": "post", ...}`` or ``{"kind": "redirect", "location", "status"}``
        404 NOT FOUND: Nothing published lives at the path
    """
    path = request.args.get('path')
    if not path:
        raise CmsError("path is required", status_code=400)
    track = request.args.get('track', '1').lower() not in ('0', 'false', 'no')
    return success(PublicService.resolve(path, track=track))


@public_api.route('/posts/<int:post_id>', methods=['GET'])
def get_post(post_id: int):
    return success(PublicService.render_post(PublicService.get_published(post_id)))


@public_api.route('/posts/<int:post_id>/view', methods=['POST'])
def record_view(post_id: int):
    """Count a view of a published post for its A/B group."""
    post = PublicService.get_published(post_id)
    view = VariationService.record_view(post)
    return success({'recorded': view is not None, 'ab_variation': post.ab_variation})
