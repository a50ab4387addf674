"""
Schema definitions for the authentication API.
"""

from marshmallow import fields, validate

from api.common import BaseSchema
from models.auth.user import User


class LoginSchema(BaseSchema):
    """Credentials for the login endpoint."""
    email = fields.Email(required=True, error_messages={"required": "Email is required"})
    password = fields.String(required=True, load_only=True,
                             error_messages={"required": "Password is required"})


class UserCreateSchema(BaseSchema):
    """Schema for creating a user."""
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=8))
    role = fields.String(load_default=User.ROLE_EDITOR, validate=validate.OneOf(User.VALID_ROLES))
    full_name = fields.String(allow_none=True)
    is_active = fields.Boolean(load_default=True)


class UserUpdateSchema(BaseSchema):
    """Schema for updating a user."""
    password = fields.String(load_only=True, validate=validate.Length(min=8))
    role = fields.String(validate=validate.OneOf(User.VALID_ROLES))
    full_name = fields.String(allow_none=True)
    is_active = fields.Boolean()


login_schema = LoginSchema()
user_create_schema = UserCreateSchema()
user_update_schema = UserUpdateSchema()
