import pytest
from sqlalchemy import func, select

from app import exceptions
from app.models import Category, CategoryClosure
from app.schemas.category import CategoryCreate, CategoryUpdate


async def closure_rows(db_session, descendant_id):
    result = await db_session.execute(
        select(CategoryClosure.ancestor_id, CategoryClosure.depth)
        .where(CategoryClosure.descendant_id == descendant_id)
        .order_by(CategoryClosure.depth)
    )
    return [tuple(row) for row in result.all()]


async def ancestor_names(service, category_id):
    return [category.name for category in await service.ancestors(category_id)]


async def assert_closure_matches_parents(db_session, service):
    """The closure index must agree with the chain obtained by walking parent_id."""
    parents = dict((await db_session.execute(select(Category.id, Category.parent_id))).all())

    for category_id in parents:
        chain = [category_id]
        while parents[chain[-1]] is not None:
            chain.append(parents[chain[-1]])
            assert len(chain) <= len(parents), "parent_id walk does not terminate"

        assert await service._ancestor_ids(category_id) == list(reversed(chain))


@pytest.fixture
async def tree(make_category):
    """
    Electronics
    ├── Phones
    │   └── Smartphones
    └── Laptops
    Books
    """
    electronics = await make_category("Electronics")
    phones = await make_category("Phones", electronics.id)
    smartphones = await make_category("Smartphones", phones.id)
    laptops = await make_category("Laptops", electronics.id)
    books = await make_category("Books")
    return {
        "electronics": electronics,
        "phones": phones,
        "smartphones": smartphones,
        "laptops": laptops,
        "books": books,
    }


class TestCreateCategory:

    async def test_root_gets_self_row(self, category_service, db_session):
        root = await category_service.create(CategoryCreate(name="Garden", color="#00FF00"))

        assert root.id is not None
        assert root.is_root
        assert root.color == "#00FF00"
        assert await closure_rows(db_session, root.id) == [(root.id, 0)]

    async def test_nested_categories_index_every_ancestor(self, tree, category_service, db_session):
        smartphones = tree["smartphones"]

        assert await closure_rows(db_session, smartphones.id) == [
            (smartphones.id, 0),
            (tree["phones"].id, 1),
            (tree["electronics"].id, 2),
        ]
        assert await category_service.get_level(smartphones.id) == 2
        assert await category_service.get_level(tree["electronics"].id) == 0

    async def test_duplicate_sibling_name_conflicts(self, tree, category_service, db_session):
        before = await db_session.scalar(select(func.count(Category.id)))

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.create(CategoryCreate(name="Phones", parent_id=tree["electronics"].id))

        assert await db_session.scalar(select(func.count(Category.id))) == before

    async def test_duplicate_root_name_conflicts(self, tree, category_service):
        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.create(CategoryCreate(name="Books"))

    async def test_same_name_under_different_parent(self, tree, category_service):
        accessories = await category_service.create(CategoryCreate(name="Accessories", parent_id=tree["phones"].id))
        other = await category_service.create(CategoryCreate(name="Accessories", parent_id=tree["laptops"].id))

        assert accessories.id != other.id

    async def test_missing_parent(self, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.create(CategoryCreate(name="Orphan", parent_id=999))


class TestReadCategories:

    async def test_get_loads_parent_and_children(self, tree, category_service):
        phones = await category_service.get(tree["phones"].id)

        assert phones.parent.name == "Electronics"
        assert [child.name for child in phones.children] == ["Smartphones"]
        assert not await category_service.is_leaf(phones.id)
        assert await category_service.is_leaf(tree["smartphones"].id)

    async def test_get_missing(self, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.get(404)

    async def test_ancestors_run_root_to_leaf(self, tree, category_service):
        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Electronics", "Phones", "Smartphones"]
        assert await ancestor_names(category_service, tree["books"].id) == ["Books"]

    async def test_descendants_are_nearest_first(self, tree, category_service):
        descendants = await category_service.descendants(tree["electronics"].id)

        assert [category.name for category in descendants] == ["Electronics", "Phones", "Laptops", "Smartphones"]

    async def test_descendants_of_missing_category(self, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.descendants(404)

    async def test_list_trees_nests_children(self, tree, category_service):
        trees = await category_service.list_trees()

        assert [node.name for node in trees] == ["Electronics", "Books"]
        electronics = trees[0]
        assert [child.name for child in electronics.children] == ["Phones", "Laptops"]
        assert [child.name for child in electronics.children[0].children] == ["Smartphones"]
        assert trees[1].children == []

    async def test_list_roots(self, tree, category_service):
        roots = await category_service.list_roots()

        assert [category.name for category in roots] == ["Electronics", "Books"]

    async def test_stats(self, tree, category_service, make_product):
        await make_product(category_id=tree["phones"].id)
        await make_product(category_id=tree["phones"].id)
        await make_product(category_id=tree["books"].id)
        await make_product(category_id=None)

        stats = await category_service.stats()

        assert stats.total == 5
        assert stats.root == 2
        assert stats.with_products == 2


class TestMoveCategory:

    async def test_move_under_itself_is_a_cycle(self, tree, category_service):
        phones = tree["phones"]

        with pytest.raises(exceptions.CategoryCycleException):
            await category_service.move(phones.id, phones.id)

    async def test_move_under_descendant_is_a_cycle(self, tree, category_service, db_session):
        with pytest.raises(exceptions.CategoryCycleException):
            await category_service.move(tree["electronics"].id, tree["smartphones"].id)

        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Electronics", "Phones", "Smartphones"]

    async def test_would_create_cycle(self, tree, category_service):
        assert await category_service.would_create_cycle(tree["phones"].id, tree["phones"].id)
        assert await category_service.would_create_cycle(tree["phones"].id, tree["smartphones"].id)
        assert not await category_service.would_create_cycle(tree["phones"].id, tree["books"].id)
        assert not await category_service.would_create_cycle(tree["smartphones"].id, tree["electronics"].id)

    async def test_move_relinks_the_whole_subtree(self, tree, category_service, db_session):
        moved = await category_service.move(tree["phones"].id, tree["books"].id)

        assert moved.parent_id == tree["books"].id
        assert moved.parent.name == "Books"
        assert await ancestor_names(category_service, tree["phones"].id) == ["Books", "Phones"]
        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Books", "Phones", "Smartphones"]
        assert [c.name for c in await category_service.descendants(tree["electronics"].id)] == ["Electronics", "Laptops"]
        await assert_closure_matches_parents(db_session, category_service)

    async def test_move_to_missing_parent(self, tree, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.move(tree["phones"].id, 999)

    async def test_move_missing_category(self, tree, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.move(999, tree["books"].id)

    async def test_move_onto_sibling_with_same_name(self, tree, make_category, category_service):
        await make_category("Phones", tree["books"].id)

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.move(tree["phones"].id, tree["books"].id)

        assert await ancestor_names(category_service, tree["phones"].id) == ["Electronics", "Phones"]

    async def test_move_to_current_parent_changes_nothing(self, tree, category_service, db_session):
        moved = await category_service.move(tree["phones"].id, tree["electronics"].id)

        assert moved.parent_id == tree["electronics"].id
        await assert_closure_matches_parents(db_session, category_service)

    async def test_sequence_of_moves_never_creates_a_cycle(self, tree, category_service, db_session):
        ids = {name: category.id for name, category in tree.items()}
        moves = [
            ("laptops", "smartphones"),
            ("electronics", "laptops"),
            ("books", "laptops"),
            ("phones", "books"),
            ("smartphones", "books"),
            ("electronics", "books"),
            ("laptops", "books"),
        ]

        for child, parent in moves:
            try:
                await category_service.move(ids[child], ids[parent])
            except exceptions.CategoryCycleException:
                pass

            for category_id in ids.values():
                chain = await category_service._ancestor_ids(category_id)
                assert chain[-1] == category_id
                assert category_id not in chain[:-1]

        await assert_closure_matches_parents(db_session, category_service)


class TestUpdateCategory:

    async def test_update_plain_fields(self, tree, category_service):
        updated = await category_service.update(
            tree["laptops"].id, CategoryUpdate(description="Portable computers", is_active=False)
        )

        assert updated.description == "Portable computers"
        assert updated.is_active is False
        assert updated.name == "Laptops"

    async def test_rename_to_sibling_name_conflicts(self, tree, category_service):
        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.update(tree["laptops"].id, CategoryUpdate(name="Phones"))

    async def test_explicit_null_parent_moves_to_root(self, tree, category_service, db_session):
        updated = await category_service.update(tree["phones"].id, CategoryUpdate(parent_id=None))

        assert updated.parent_id is None
        assert updated.is_root
        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Phones", "Smartphones"]
        await assert_closure_matches_parents(db_session, category_service)

    async def test_omitted_parent_keeps_position(self, tree, category_service):
        updated = await category_service.update(tree["phones"].id, CategoryUpdate(name="Mobile"))

        assert updated.parent_id == tree["electronics"].id
        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Electronics", "Mobile", "Smartphones"]

    async def test_update_parent_to_descendant_is_a_cycle(self, tree, category_service):
        with pytest.raises(exceptions.CategoryCycleException):
            await category_service.update(tree["electronics"].id, CategoryUpdate(parent_id=tree["smartphones"].id))

    async def test_update_parent_to_missing_category(self, tree, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.update(tree["phones"].id, CategoryUpdate(parent_id=999))

    async def test_update_missing_category(self, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.update(999, CategoryUpdate(name="Ghost"))


class TestRemoveCategory:

    async def test_remove_leaf(self, tree, category_service, db_session):
        laptops_id = tree["laptops"].id

        await category_service.remove(laptops_id)

        assert await db_session.get(Category, laptops_id) is None
        assert await closure_rows(db_session, laptops_id) == []
        assert [c.name for c in await category_service.descendants(tree["electronics"].id)] == [
            "Electronics", "Phones", "Smartphones"
        ]

    async def test_remove_with_children_conflicts(self, tree, category_service, db_session):
        with pytest.raises(exceptions.CategoryHasChildrenException):
            await category_service.remove(tree["phones"].id)

        assert await db_session.scalar(select(func.count(Category.id))) == 5
        assert await ancestor_names(category_service, tree["smartphones"].id) == ["Electronics", "Phones", "Smartphones"]

    async def test_remove_with_products_conflicts(self, tree, category_service, db_session, make_product):
        await make_product(category_id=tree["books"].id)

        with pytest.raises(exceptions.CategoryHasProductsException) as exc_info:
            await category_service.remove(tree["books"].id)

        assert "1 associated products" in str(exc_info.value)
        assert await db_session.scalar(select(func.count(Category.id))) == 5

    async def test_remove_missing(self, category_service):
        with pytest.raises(exceptions.CategoryNotFoundException):
            await category_service.remove(999)


class TestStoreLevelNameConflicts:
    """
    With the pre-check out of the way, the sibling unique constraint still
    rejects the write and nothing is left behind.
    """

    @pytest.fixture(autouse=True)
    def skip_name_check(self, monkeypatch, category_service):
        async def no_check(*args, **kwargs):
            return None

        monkeypatch.setattr(category_service, "_ensure_unique_name", no_check)

    async def row_counts(self, db_session):
        return (
            await db_session.scalar(select(func.count(Category.id))),
            await db_session.scalar(select(func.count()).select_from(CategoryClosure)),
        )

    async def test_create_duplicate_root(self, tree, category_service, db_session):
        before = await self.row_counts(db_session)

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.create(CategoryCreate(name="Books"))

        assert await self.row_counts(db_session) == before

    async def test_create_duplicate_sibling(self, tree, category_service, db_session):
        electronics_id = tree["electronics"].id
        before = await self.row_counts(db_session)

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.create(CategoryCreate(name="Phones", parent_id=electronics_id))

        assert await self.row_counts(db_session) == before
        assert [c.name for c in await category_service.descendants(electronics_id)] == [
            "Electronics", "Phones", "Laptops", "Smartphones"
        ]

    async def test_rename_to_sibling_name(self, tree, category_service, db_session):
        laptops_id = tree["laptops"].id
        before = await self.row_counts(db_session)

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.update(laptops_id, CategoryUpdate(name="Phones"))

        assert await self.row_counts(db_session) == before
        assert (await category_service.get(laptops_id)).name == "Laptops"

    async def test_move_onto_parent_with_same_named_child(self, tree, make_category, category_service, db_session):
        phones_id, smartphones_id, books_id = tree["phones"].id, tree["smartphones"].id, tree["books"].id
        await make_category("Phones", books_id)
        before = await self.row_counts(db_session)

        with pytest.raises(exceptions.CategoryExistsException):
            await category_service.move(phones_id, books_id)

        assert await self.row_counts(db_session) == before
        assert await ancestor_names(category_service, smartphones_id) == ["Electronics", "Phones", "Smartphones"]
        await assert_closure_matches_parents(db_session, category_service)
