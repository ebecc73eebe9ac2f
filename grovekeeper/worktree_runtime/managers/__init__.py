"""Domain managers for the worktree runtime.

Managers encapsulate lifecycle orchestration and business logic.  They raise
domain exceptions (``WorktreeError`` subclasses), never HTTP exceptions --
that translation is the router's responsibility.
"""
