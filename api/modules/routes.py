"""
Module API routes.

Type and post type listings come from the in-process registries and are
cached; global instances are stored in the database.
"""

from flask import Blueprint, request

from extensions import cache
from api.common import load_json, success
from core.exceptions import NotFoundError
from services.authorization_service import login_required, permission_required
from services.module_registry import module_registry
from services.post_module_service import PostModuleService
from services.post_types import post_type_registry
from .schemas import global_create_schema, global_update_schema

modules_api = Blueprint('modules', __name__, url_prefix='/modules')


@modules_api.route('/types', methods=['GET'])
@login_required
@cache.cached(timeout=300, query_string=True)
def list_module_types():
    """
    Module types with their fields, allowed scopes and default props.

    Query Parameters:
        post_type: Only modules usable on this post type
    """
    post_type = request.args.get('post_type')
    configs = module_registry.for_post_type(post_type) if post_type else module_registry.configs()
    return success([config.to_dict() for config in configs])


@modules_api.route('/types/<string:module_type>', methods=['GET'])
@login_required
def get_module_type(module_type: str):
    return success(module_registry.schema(module_type))


@modules_api.route('/post-types', methods=['GET'])
@login_required
@cache.cached(timeout=300)
def list_post_types():
    return success([config.to_dict() for config in post_type_registry.configs()])


@modules_api.route('/post-types/<string:post_type>', methods=['GET'])
@login_required
def get_post_type(post_type: str):
    config = post_type_registry.get(post_type)
    if config is None:
        raise NotFoundError(f"Post type '{post_type}' is not registered")
    return success(config.to_dict())


@modules_api.route('/globals', methods=['GET'])
@permission_required('globals.view')
def list_globals():
    instances = PostModuleService.list_globals(search=request.args.get('search'),
                                               module_type=request.args.get('type'))
    return success([instance.to_dict() for instance in instances])


@modules_api.route('/globals/<int:global_id>', methods=['GET'])
@permission_required('globals.view')
def get_global(global_id: int):
    return success(PostModuleService.get_global(global_id).to_dict())


@modules_api.route('/globals', methods=['POST'])
@permission_required('globals.edit')
def create_global():
    """
    Create a shared module instance.

    Returns:
        201 CREATED: The instance
        400 BAD REQUEST: Type cannot be global
        409 CONFLICT: Slug already used
    """
    data = load_json(global_create_schema)
    instance = PostModuleService.create_global(data['type'], data['global_slug'],
                                               props=data.get('props'),
                                               global_label=data.get('global_label'))
    return success(instance.to_dict(), 201)


@modules_api.route('/globals/<int:global_id>', methods=['PATCH', 'PUT'])
@permission_required('globals.edit')
def update_global(global_id: int):
    data = load_json(global_update_schema)
    instance = PostModuleService.update_global(global_id, props=data.get('props'),
                                               global_label=data.get('global_label'),
                                               mode=data['mode'])
    return success(instance.to_dict())


@modules_api.route('/globals/<int:global_id>', methods=['DELETE'])
@permission_required('globals.delete')
def delete_global(global_id: int):
    """Delete a global instance; 409 while posts still place it."""
    PostModuleService.delete_global(global_id)
    return success(None, message="Global module deleted")
