"""
Menu Service for the CMS.

Menus hold two levels of items. Items link to a post (their URL is resolved
from the post's URL pattern when the tree is built) or to a custom URL;
``section`` items are headings without a link.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.menu import Menu, MenuItem
from models.content.post import Post
from core.exceptions import CmsError, ConflictError, NotFoundError
from core.utils.string import slugify
from services.url_pattern_service import UrlPatternService

logger = logging.getLogger(__name__)

ITEM_FIELDS = ['label', 'type', 'post_id', 'custom_url', 'parent_id', 'locale',
               'anchor', 'target', 'rel', 'kind', 'order_index']


def _check_link(item_type: str, kind: str, post_id: Optional[int], custom_url: Optional[str]) -> None:
    if kind == MenuItem.KIND_SECTION:
        return
    if item_type == MenuItem.TYPE_POST:
        post = db.session.get(Post, post_id) if post_id is not None else None
        if post is None or post.is_deleted:
            raise CmsError("Menu item must reference an existing post", status_code=400,
                           meta={'post_id': post_id})
    elif not custom_url:
        raise CmsError("Custom menu items require a custom_url", status_code=400)


class MenuService:
    """
    Provides methods for managing menus and building their item trees.
    """

    @staticmethod
    def list_menus(locale: Optional[str] = None) -> List[Menu]:
        query = Menu.query
        if locale:
            query = query.filter(db.or_(Menu.locale == locale, Menu.locale.is_(None)))
        return query.order_by(Menu.name.asc()).all()

    @staticmethod
    def get_menu(menu_id: int) -> Menu:
        return Menu.get_or_404(menu_id, "Menu not found")

    @staticmethod
    def get_menu_by_slug(slug: str) -> Menu:
        menu = Menu.get_by_slug(slug)
        if menu is None:
            raise NotFoundError("Menu not found", meta={'slug': slug})
        return menu

    @staticmethod
    def create_menu(name: str, slug: Optional[str] = None, locale: Optional[str] = None) -> Menu:
        """
        Raises:
            ConflictError: If the slug is taken
        """
        slug = slugify(slug or name)
        if Menu.get_by_slug(slug) is not None:
            raise ConflictError(f"Menu '{slug}' already exists")
        try:
            menu = Menu(name=name, slug=slug, locale=locale)
            db.session.add(menu)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create menu %s: %s", slug, e)
            raise
        return menu

    @staticmethod
    def update_menu(menu_id: int, name: Optional[str] = None, slug: Optional[str] = None,
                    locale: Optional[str] = None) -> Menu:
        menu = MenuService.get_menu(menu_id)
        changes: Dict[str, Any] = {}
        if name:
            changes['name'] = name
        if slug:
            slug = slugify(slug)
            clash = Menu.get_by_slug(slug)
            if clash is not None and clash.id != menu.id:
                raise ConflictError(f"Menu '{slug}' already exists")
            changes['slug'] = slug
        if locale is not None:
            changes['locale'] = locale or None
        menu.update(**changes)
        return menu

    @staticmethod
    def delete_menu(menu_id: int) -> None:
        MenuService.get_menu(menu_id).delete()

    @staticmethod
    def add_item(menu_id: int, label: str, type: str = MenuItem.TYPE_CUSTOM, **fields) -> MenuItem:
        """
        Add an item to a menu.

        Args:
            menu_id: Menu
            label: Link text
            type: ``post`` or ``custom``
            **fields: ``post_id``, ``custom_url``, ``parent_id``, ``locale``,
                ``anchor``, ``target``, ``rel``, ``kind``, ``order_index``

        Raises:
            CmsError: 400 for missing link targets, invalid nesting or values
        """
        menu = MenuService.get_menu(menu_id)
        kind = fields.get('kind') or MenuItem.KIND_ITEM
        _check_link(type, kind, fields.get('post_id'), fields.get('custom_url'))
        if fields.get('order_index') is None:
            siblings = [i.order_index for i in menu.items if i.parent_id == fields.get('parent_id')]
            fields['order_index'] = (max(siblings) + 1) if siblings else 0
        fields['kind'] = kind
        try:
            item = MenuItem(menu_id=menu.id, label=label, type=type,
                            **{k: v for k, v in fields.items() if k in ITEM_FIELDS})
        except ValueError as e:
            raise CmsError(str(e), status_code=400)
        try:
            db.session.add(item)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to add item to menu %s: %s", menu_id, e)
            raise
        return item

    @staticmethod
    def update_item(item_id: int, **changes) -> MenuItem:
        item = MenuItem.get_or_404(item_id, "Menu item not found")
        changes = {k: v for k, v in changes.items() if k in ITEM_FIELDS}
        item_type = changes.get('type', item.type)
        kind = changes.get('kind', item.kind)
        if item_type not in MenuItem.VALID_TYPES or kind not in MenuItem.VALID_KINDS:
            raise CmsError("Invalid menu item type or kind", status_code=400)
        _check_link(item_type, kind, changes.get('post_id', item.post_id),
                    changes.get('custom_url', item.custom_url))
        try:
            item.update(**changes)
        except ValueError as e:
            db.session.rollback()
            raise CmsError(str(e), status_code=400)
        return item

    @staticmethod
    def delete_item(item_id: int) -> None:
        MenuItem.get_or_404(item_id, "Menu item not found").delete()

    @staticmethod
    def reorder_items(menu_id: int, items: List[Dict[str, Any]]) -> int:
        """
        Set ``order_index`` (and optionally ``parent_id``) of several items.

        Raises:
            CmsError: 400 for items of another menu or invalid nesting
        """
        menu = MenuService.get_menu(menu_id)
        try:
            for entry in items:
                item = MenuItem.get_or_404(entry.get('id'), "Menu item not found")
                if item.menu_id != menu.id:
                    raise CmsError("Menu item belongs to another menu", status_code=400,
                                   meta={'item_id': item.id})
                if 'parent_id' in entry:
                    item.parent_id = entry['parent_id']
                item.order_index = int(entry.get('order_index', item.order_index))
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            raise CmsError(str(e), status_code=400)
        except CmsError:
            db.session.rollback()
            raise
        return len(items)

    @staticmethod
    def resolve_url(item: MenuItem) -> Optional[str]:
        """URL of an item: the post's path or the custom URL, plus ``#anchor``."""
        if item.kind == MenuItem.KIND_SECTION:
            return None
        if item.type == MenuItem.TYPE_POST:
            post = item.post
            if post is None or post.is_deleted:
                return None
            url = UrlPatternService.build_post_path(post)
        else:
            url = item.custom_url
        if url and item.anchor:
            url = f"{url}#{item.anchor.lstrip('#')}"
        return url

    @staticmethod
    def tree(menu: Menu, locale: Optional[str] = None) -> Dict[str, Any]:
        """
        Nested menu structure with resolved URLs.

        Args:
            menu: Menu
            locale: Only include items of this locale (and items without one)

        Returns:
            Dict[str, Any]: Menu data with ``items``, each carrying ``url`` and ``children``
        """
        def node(item: MenuItem) -> Dict[str, Any]:
            data = item.to_dict(include_children=False)
            data['url'] = MenuService.resolve_url(item)
            data['children'] = [
                node(child) for child in item.children
                if locale is None or child.locale in (None, locale)
            ]
            return data

        data = menu.to_dict()
        data['items'] = [node(item) for item in menu.root_items(locale)]
        return data
