"""Template API routes."""

from flask import Blueprint, request

from api.common import load_json, success
from services.authorization_service import permission_required
from services.template_service import TemplateService
from .schemas import template_schema, template_update_schema

templates_api = Blueprint('templates', __name__, url_prefix='/templates')


@templates_api.route('', methods=['GET'])
@permission_required('templates.view')
def list_templates():
    templates = TemplateService.list_templates(request.args.get('post_type'))
    return success([template.to_dict(include_modules=False) for template in templates])


@templates_api.route('/<int:template_id>', methods=['GET'])
@permission_required('templates.view')
def get_template(template_id: int):
    return success(TemplateService.get_template(template_id).to_dict())


@templates_api.route('', methods=['POST'])
@permission_required('templates.edit')
def create_template():
    """
    Create a template with its module slots.

    Returns:
        201 CREATED: The template
        400 BAD REQUEST: Unknown post type or invalid slots
        409 CONFLICT: Name already used
    """
    data = load_json(template_schema)
    return success(TemplateService.create_template(**data).to_dict(), 201)


@templates_api.route('/<int:template_id>', methods=['PATCH', 'PUT'])
@permission_required('templates.edit')
def update_template(template_id: int):
    data = load_json(template_update_schema)
    return success(TemplateService.update_template(template_id, **data).to_dict())


@templates_api.route('/<int:template_id>', methods=['DELETE'])
@permission_required('templates.delete')
def delete_template(template_id: int):
    TemplateService.delete_template(template_id)
    return success(None, message="Template deleted")
