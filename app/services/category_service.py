from collections import defaultdict
from typing import List, Optional

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .. import exceptions
from ..core.logger import setup_logger
from ..models import Category, CategoryClosure, Product
from ..schemas.category import (
    CategoryCreate,
    CategoryResponse,
    CategoryStatsResponse,
    CategoryTreeResponse,
    CategoryUpdate,
)


logger = setup_logger(__name__)


class CategoryService:
    """
    Category tree operations.

    The tree is stored twice: as an adjacency list (``Category.parent_id``) and as
    an ancestor/descendant index (``CategoryClosure``). Every write that touches
    ``parent_id`` re-links the closure rows in the same transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db


    async def _get_or_404(self, category_id: int) -> Category:
        category = await self.db.get(Category, category_id)

        if not category:
            raise exceptions.CategoryNotFoundException(f"Category with ID {category_id} not found")

        return category


    async def _ensure_unique_name(self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None) -> None:
        """
        Raises CategoryExistsException when a sibling (same parent, or root level
        when parent_id is None) already uses the name.
        """
        stmt = select(Category.id).where(Category.name == name)

        if parent_id is None:
            stmt = stmt.where(Category.parent_id.is_(None))
        else:
            stmt = stmt.where(Category.parent_id == parent_id)

        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)

        if (await self.db.execute(stmt)).first():
            logger.warning(f"Category name '{name}' already used under parent {parent_id}")
            raise exceptions.CategoryExistsException("A category with this name already exists at the same level")


    async def _ancestor_ids(self, category_id: int) -> List[int]:
        """ Inclusive ancestor chain, root first. """
        stmt = (
            select(CategoryClosure.ancestor_id)
            .where(CategoryClosure.descendant_id == category_id)
            .order_by(CategoryClosure.depth.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())


    async def _link_new_node(self, category_id: int, parent_id: Optional[int]) -> None:
        rows = [{"ancestor_id": category_id, "descendant_id": category_id, "depth": 0}]

        if parent_id is not None:
            result = await self.db.execute(
                select(CategoryClosure.ancestor_id, CategoryClosure.depth)
                .where(CategoryClosure.descendant_id == parent_id)
            )
            rows.extend(
                {"ancestor_id": ancestor_id, "descendant_id": category_id, "depth": depth + 1}
                for ancestor_id, depth in result.all()
            )

        await self.db.execute(insert(CategoryClosure).values(rows))


    async def _relink_subtree(self, category_id: int, new_parent_id: Optional[int]) -> None:
        """
        Detaches the subtree rooted at category_id from its current ancestors and
        attaches it below new_parent_id (or leaves it as a root when None).
        """
        subtree = (
            await self.db.execute(
                select(CategoryClosure.descendant_id, CategoryClosure.depth)
                .where(CategoryClosure.ancestor_id == category_id)
            )
        ).all()
        subtree_ids = [descendant_id for descendant_id, _ in subtree]

        # links from outside the subtree into it
        await self.db.execute(
            delete(CategoryClosure)
            .where(
                CategoryClosure.descendant_id.in_(subtree_ids),
                CategoryClosure.ancestor_id.not_in(subtree_ids),
            )
            .execution_options(synchronize_session="fetch")
        )

        if new_parent_id is None:
            return

        new_ancestors = (
            await self.db.execute(
                select(CategoryClosure.ancestor_id, CategoryClosure.depth)
                .where(CategoryClosure.descendant_id == new_parent_id)
            )
        ).all()

        rows = [
            {
                "ancestor_id": ancestor_id,
                "descendant_id": descendant_id,
                "depth": ancestor_depth + descendant_depth + 1,
            }
            for ancestor_id, ancestor_depth in new_ancestors
            for descendant_id, descendant_depth in subtree
        ]
        await self.db.execute(insert(CategoryClosure).values(rows))


    async def would_create_cycle(self, category_id: int, new_parent_id: int) -> bool:
        """
        A move of category_id under new_parent_id is illegal when category_id is
        new_parent_id itself or appears in new_parent_id's ancestor chain.
        """
        if category_id == new_parent_id:
            return True

        return category_id in await self._ancestor_ids(new_parent_id)


    async def create(self, data: CategoryCreate) -> Category:
        category_data = data.model_dump()
        parent_id = category_data["parent_id"]

        if parent_id is not None:
            await self._get_or_404(parent_id)

        await self._ensure_unique_name(category_data["name"], parent_id)

        category = Category(**category_data)

        try:
            self.db.add(category)
            await self.db.flush()
            await self._link_new_node(category.id, parent_id)
            await self.db.commit()
        except IntegrityError:
            # a concurrent writer won the sibling-name race
            await self.db.rollback()
            raise exceptions.CategoryExistsException("A category with this name already exists at the same level")
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(category)
        logger.info(f"Created category {category.id} '{category.name}' under parent {parent_id}")
        return category


    async def get(self, category_id: int) -> Category:
        """
        Returns the category with its parent and direct children loaded.
        """
        stmt = (
            select(Category)
            .options(selectinload(Category.parent), selectinload(Category.children))
            .where(Category.id == category_id)
            .execution_options(populate_existing=True)
        )
        category = (await self.db.execute(stmt)).scalars().first()

        if not category:
            raise exceptions.CategoryNotFoundException(f"Category with ID {category_id} not found")

        return category


    async def get_level(self, category_id: int) -> int:
        level = await self.db.scalar(
            select(func.max(CategoryClosure.depth)).where(CategoryClosure.descendant_id == category_id)
        )
        return level or 0


    async def list_trees(self) -> List[CategoryTreeResponse]:
        result = await self.db.execute(select(Category).order_by(Category.id))
        categories = result.scalars().all()

        children_by_parent = defaultdict(list)
        for category in categories:
            children_by_parent[category.parent_id].append(category)

        def build(node: Category) -> CategoryTreeResponse:
            return CategoryTreeResponse(
                **CategoryResponse.model_validate(node).model_dump(),
                children=[build(child) for child in children_by_parent[node.id]],
            )

        return [build(root) for root in children_by_parent[None]]


    async def list_roots(self) -> List[Category]:
        result = await self.db.execute(
            select(Category).where(Category.parent_id.is_(None)).order_by(Category.id)
        )
        return result.scalars().all()


    async def descendants(self, category_id: int) -> List[Category]:
        """ The category and everything below it, breadth first. """
        await self._get_or_404(category_id)

        result = await self.db.execute(
            select(Category)
            .join(CategoryClosure, CategoryClosure.descendant_id == Category.id)
            .where(CategoryClosure.ancestor_id == category_id)
            .order_by(CategoryClosure.depth, Category.id)
        )
        return result.scalars().all()


    async def ancestors(self, category_id: int) -> List[Category]:
        """ The chain from the root down to the category itself. """
        await self._get_or_404(category_id)

        result = await self.db.execute(
            select(Category)
            .join(CategoryClosure, CategoryClosure.ancestor_id == Category.id)
            .where(CategoryClosure.descendant_id == category_id)
            .order_by(CategoryClosure.depth.desc())
        )
        return result.scalars().all()


    async def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = await self._get_or_404(category_id)

        update_data = data.model_dump(exclude_unset=True)

        # name and is_active are not nullable, an explicit null means "leave as is"
        for field in ("name", "is_active"):
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        parent_changed = "parent_id" in update_data and update_data["parent_id"] != category.parent_id
        target_parent_id = update_data["parent_id"] if parent_changed else category.parent_id

        if parent_changed and target_parent_id is not None:
            await self._get_or_404(target_parent_id)

            if await self.would_create_cycle(category_id, target_parent_id):
                logger.warning(f"Rejected update of category {category_id}: parent {target_parent_id} would create a cycle")
                raise exceptions.CategoryCycleException("Cannot move the category: it would create a cycle")

        new_name = update_data.get("name", category.name)
        if new_name != category.name or parent_changed:
            await self._ensure_unique_name(new_name, target_parent_id, exclude_id=category_id)

        try:
            for field, value in update_data.items():
                setattr(category, field, value)

            if parent_changed:
                await self.db.flush()
                await self._relink_subtree(category_id, target_parent_id)

            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise exceptions.CategoryExistsException("A category with this name already exists at the same level")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Updated category {category_id}: {sorted(update_data)}")
        return await self.get(category_id)


    async def move(self, category_id: int, new_parent_id: int) -> Category:
        category = await self._get_or_404(category_id)
        await self._get_or_404(new_parent_id)

        if await self.would_create_cycle(category_id, new_parent_id):
            logger.warning(f"Rejected move of category {category_id} under {new_parent_id}: cycle")
            raise exceptions.CategoryCycleException("Cannot move the category: it would create a cycle")

        if category.parent_id == new_parent_id:
            return await self.get(category_id)

        await self._ensure_unique_name(category.name, new_parent_id, exclude_id=category_id)

        try:
            category.parent_id = new_parent_id
            await self.db.flush()
            await self._relink_subtree(category_id, new_parent_id)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise exceptions.CategoryExistsException("A category with this name already exists at the same level")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Moved category {category_id} under {new_parent_id}")
        return await self.get(category_id)


    async def count_products(self, category_id: int) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(Product).where(Product.category_id == category_id)
        ) or 0


    async def count_children(self, category_id: int) -> int:
        """ Descendants excluding the category itself. """
        return await self.db.scalar(
            select(func.count())
            .select_from(CategoryClosure)
            .where(CategoryClosure.ancestor_id == category_id, CategoryClosure.depth > 0)
        ) or 0


    async def is_leaf(self, category_id: int) -> bool:
        return await self.count_children(category_id) == 0


    async def remove(self, category_id: int) -> None:
        await self._get_or_404(category_id)

        products_count = await self.count_products(category_id)
        if products_count > 0:
            raise exceptions.CategoryHasProductsException(
                f"Cannot delete category. It has {products_count} associated products. Please reassign or delete the products first."
            )

        children_count = await self.count_children(category_id)
        if children_count > 0:
            raise exceptions.CategoryHasChildrenException(
                f"Cannot delete category. It has {children_count} child categories. Please reassign or delete the child categories first."
            )

        try:
            await self.db.execute(
                delete(CategoryClosure)
                .where(or_(CategoryClosure.ancestor_id == category_id, CategoryClosure.descendant_id == category_id))
                .execution_options(synchronize_session="fetch")
            )
            await self.db.execute(
                delete(Category)
                .where(Category.id == category_id)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Deleted category {category_id}")


    async def stats(self) -> CategoryStatsResponse:
        total = await self.db.scalar(select(func.count(Category.id))) or 0
        root = await self.db.scalar(
            select(func.count(Category.id)).where(Category.parent_id.is_(None))
        ) or 0
        with_products = await self.db.scalar(
            select(func.count(func.distinct(Product.category_id)))
            .select_from(Product)
            .join(Category, Category.id == Product.category_id)
        ) or 0

        return CategoryStatsResponse(total=total, root=root, with_products=with_products)
