import pytest

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.recipe import (
    Direction,
    Ingredient,
    IngredientAmount,
    Recipe,
    RecipeCategory,
    RecipeId,
    ServingSize,
    Tag,
    TimeRange,
)


@pytest.fixture
def recipe() -> Recipe:
    return Recipe.create("  Pancakes  ", "Fluffy", RecipeCategory.BREAKFAST).value


def test_create_trims_title(recipe: Recipe):
    assert recipe.title == "Pancakes"
    assert recipe.category == RecipeCategory.BREAKFAST
    assert recipe.created_at == recipe.updated_at
    assert recipe.ingredients == ()


@pytest.mark.parametrize("title", ["", "   ", "x" * 201])
def test_create_rejects_invalid_titles(title):
    result = Recipe.create(title)

    assert result.is_failure
    assert result.kind == ErrorKind.VALIDATION


def test_create_rejects_long_description():
    assert Recipe.create("Soup", "d" * 1001).is_failure


def test_mutations_return_new_instances(recipe: Recipe):
    ingredient = Ingredient.create("flour", IngredientAmount.create(2, "cups").value).value

    updated = recipe.add_ingredient(ingredient).value

    assert updated is not recipe
    assert recipe.ingredients == ()
    assert updated.ingredients == (ingredient,)
    assert updated.updated_at >= recipe.updated_at
    assert updated.id == recipe.id


def test_adding_the_same_sub_entity_twice_fails(recipe: Recipe):
    tag = Tag.create("Family Recipe", "#FFAA00").value
    with_tag = recipe.add_tag(tag).value

    result = with_tag.add_tag(tag)

    assert result.is_failure
    assert "already exists" in result.error


def test_remove_unknown_direction_fails(recipe: Recipe):
    assert recipe.remove_direction("direction_missing").is_failure


def test_remove_direction(recipe: Recipe):
    direction = Direction.create("Mix well", 1, is_list_item=True).value
    with_direction = recipe.add_direction(direction).value

    removed = with_direction.remove_direction(direction.id).value

    assert removed.directions == ()
    assert direction.numbered_text == "1. Mix well"


def test_archive_is_a_state_transition(recipe: Recipe):
    archived = recipe.archive().value

    assert archived.is_archived
    assert archived.archive().is_failure
    assert archived.unarchive().value.is_archived is False
    assert recipe.unarchive().is_failure


def test_update_title_validates(recipe: Recipe):
    assert recipe.update_title("Crepes").value.title == "Crepes"
    assert recipe.update_title(" ").is_failure


def test_update_source_limits_length(recipe: Recipe):
    assert recipe.update_source("Grandma").value.source == "Grandma"
    assert recipe.update_source("s" * 201).is_failure


def test_total_time_combines_prep_and_cook(recipe: Recipe):
    with_prep = recipe.update_prep_time(TimeRange.create(15).value).value
    assert with_prep.total_time.min_minutes == 15

    both = with_prep.update_cook_time(TimeRange.create_range(10, 20).value).value

    assert both.total_time.min_minutes == 25
    assert both.total_time.max_minutes == 35
    assert both.total_time.to_short_string() == "25m-35m"


@pytest.mark.parametrize(
    "factory",
    [
        lambda: IngredientAmount.create(-1, "cup"),
        lambda: IngredientAmount.create(1, ""),
        lambda: IngredientAmount.create(1, "u" * 21),
        lambda: TimeRange.create(-5),
        lambda: TimeRange.create(1441),
        lambda: TimeRange.create_range(20, 10),
        lambda: ServingSize.create(0),
        lambda: ServingSize.create(1001),
        lambda: Ingredient.create("   "),
        lambda: Ingredient.create("salt", order=0),
        lambda: Direction.create("d" * 1001),
        lambda: Tag.create("bad!tag"),
        lambda: Tag.create("ok", "red"),
    ],
)
def test_factories_reject_invalid_input(factory):
    result = factory()

    assert result.is_failure
    assert result.kind == ErrorKind.VALIDATION


def test_time_range_formatting():
    assert TimeRange.create(90).value.to_short_string() == "1h30m"
    assert TimeRange.create(120).value.to_short_string() == "2h"
    assert TimeRange.create(45).value.to_short_string() == "45m"


def test_ingredient_display_text():
    amount = IngredientAmount.create(2, "cups").value
    assert Ingredient.create("flour", amount).value.display_text == "2 cups flour"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("MainCourse", RecipeCategory.MAIN_COURSE),
        ("main course", RecipeCategory.MAIN_COURSE),
        ("Gluten-Free", RecipeCategory.GLUTEN_FREE),
        ("dessert", RecipeCategory.DESSERT),
        ("Brunch", RecipeCategory.OTHER),
        (None, RecipeCategory.OTHER),
    ],
)
def test_category_from_name(name, expected):
    assert RecipeCategory.from_name(name) == expected


def test_category_display_name():
    assert RecipeCategory.SIDE_DISH.display_name == "Side Dish"


def test_recipe_id_from_string():
    assert RecipeId.from_string(" abc ").value.value == "abc"
    assert RecipeId.from_string("").is_failure
    assert RecipeId.new() != RecipeId.new()
