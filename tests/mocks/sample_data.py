RECIPE_TEXT = """Grandma's Pancakes
Ingredients:
- 2 cups flour
- 1 1/2 cups milk
- 2 tablespoons sugar
Directions:
1. Mix the flour and sugar.
2. Stir in the milk.
3. Cook on a hot griddle for 3 minutes per side.
"""
