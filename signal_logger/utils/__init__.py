"""utils — small helpers shared by channels."""
