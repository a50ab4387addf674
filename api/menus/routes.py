"""Menu API routes."""

from flask import Blueprint, request

from api.common import load_json, success
from services.authorization_service import permission_required
from services.menu_service import MenuService
from .schemas import (
    menu_item_schema, menu_item_update_schema, menu_reorder_schema, menu_schema,
    menu_update_schema
)

menus_api = Blueprint('menus', __name__, url_prefix='/menus')


@menus_api.route('', methods=['GET'])
@permission_required('menus.view')
def list_menus():
    menus = MenuService.list_menus(request.args.get('locale'))
    return success([menu.to_dict() for menu in menus])


@menus_api.route('', methods=['POST'])
@permission_required('menus.edit')
def create_menu():
    data = load_json(menu_schema)
    return success(MenuService.create_menu(**data).to_dict(), 201)


@menus_api.route('/<int:menu_id>', methods=['GET'])
@permission_required('menus.view')
def get_menu(menu_id: int):
    return success(MenuService.get_menu(menu_id).to_dict(include_items=True))


@menus_api.route('/<int:menu_id>', methods=['PATCH', 'PUT'])
@permission_required('menus.edit')
def update_menu(menu_id: int):
    data = load_json(menu_update_schema)
    return success(MenuService.update_menu(menu_id, **data).to_dict())


@menus_api.route('/<int:menu_id>', methods=['DELETE'])
@permission_required('menus.delete')
def delete_menu(menu_id: int):
    MenuService.delete_menu(menu_id)
    return success(None, message="Menu deleted")


@menus_api.route('/<int:menu_id>/tree', methods=['GET'])
@permission_required('menus.view')
def menu_tree(menu_id: int):
    """Nested items with resolved URLs, filtered by ``?locale=``."""
    menu = MenuService.get_menu(menu_id)
    return success(MenuService.tree(menu, request.args.get('locale')))


@menus_api.route('/slug/<string:slug>/tree', methods=['GET'])
@permission_required('menus.view')
def menu_tree_by_slug(slug: str):
    menu = MenuService.get_menu_by_slug(slug)
    return success(MenuService.tree(menu, request.args.get('locale')))


@menus_api.route('/<int:menu_id>/items', methods=['POST'])
@permission_required('menus.edit')
def add_item(menu_id: int):
    """
    Add a menu item.

    Returns:
        201 CREATED: The item
        400 BAD REQUEST: Missing post or URL, invalid nesting
    """
    data = load_json(menu_item_schema)
    item = MenuService.add_item(menu_id, data.pop('label'), data.pop('type'), **data)
    return success(item.to_dict(include_children=False), 201)


@menus_api.route('/items/<int:item_id>', methods=['PATCH', 'PUT'])
@permission_required('menus.edit')
def update_item(item_id: int):
    data = load_json(menu_item_update_schema)
    return success(MenuService.update_item(item_id, **data).to_dict(include_children=False))


@menus_api.route('/items/<int:item_id>', methods=['DELETE'])
@permission_required('menus.edit')
def delete_item(item_id: int):
    MenuService.delete_item(item_id)
    return success(None, message="Menu item deleted")


@menus_api.route('/<int:menu_id>/reorder', methods=['POST'])
@permission_required('menus.edit')
def reorder_items(menu_id: int):
    data = load_json(menu_reorder_schema)
    return success({'updated': MenuService.reorder_items(menu_id, data['items'])})
