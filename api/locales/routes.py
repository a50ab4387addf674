"""Locale API routes."""

from flask import Blueprint
from marshmallow import fields, validate

from api.common import BaseSchema, load_json, success
from services.authorization_service import login_required, permission_required
from services.locale_service import LocaleService


class LocaleCreateSchema(BaseSchema):
    code = fields.String(required=True, validate=validate.Regexp(
        r'^[a-z]{2,3}(?:-[A-Za-z0-9]{2,8})?$', error="Invalid locale code"))
    name = fields.String(allow_none=True, validate=validate.Length(max=100))
    is_enabled = fields.Boolean(load_default=True)
    is_default = fields.Boolean(load_default=False)


class LocaleUpdateSchema(BaseSchema):
    name = fields.String(allow_none=True, validate=validate.Length(max=100))
    is_enabled = fields.Boolean(allow_none=True)
    is_default = fields.Boolean(allow_none=True)


locale_create_schema = LocaleCreateSchema()
locale_update_schema = LocaleUpdateSchema()

locales_api = Blueprint('locales', __name__, url_prefix='/locales')


@locales_api.route('', methods=['GET'])
@login_required
def list_locales():
    """Supported locale codes, the default locale and the stored locale rows."""
    return success({
        'default': LocaleService.get_default_locale(),
        'supported': LocaleService.get_supported_locales(),
        'locales': [locale.to_dict() for locale in LocaleService.list_locales()],
    })


@locales_api.route('', methods=['POST'])
@permission_required('settings.manage')
def create_locale():
    """
    Add a locale; default URL patterns are created for every post type.

    Returns:
        201 CREATED: The locale
        409 CONFLICT: Locale already exists
    """
    data = load_json(locale_create_schema)
    return success(LocaleService.create_locale(**data).to_dict(), 201)


@locales_api.route('/<string:code>', methods=['PATCH', 'PUT'])
@permission_required('settings.manage')
def update_locale(code: str):
    data = load_json(locale_update_schema)
    return success(LocaleService.update_locale(code, **data).to_dict())


@locales_api.route('/<string:code>', methods=['DELETE'])
@permission_required('settings.manage')
def delete_locale(code: str):
    LocaleService.delete_locale(code)
    return success(None, message="Locale deleted")
