"""
Unit tests for role normalization.

Tests cover:
- Aliases and case/whitespace handling
- Unknown and empty tokens
- Rank ordering
- Legacy share-role permission mapping
"""

from vaultsync.access.roles import (
    DelegatePermissions,
    Role,
    at_least,
    delegate_permissions,
    normalize_role,
    rank_of,
)


class TestNormalizeRole:
    """Tests for normalize_role."""

    def test_viewer_is_reviewer(self):
        """Viewer and reviewer are the same rank."""
        assert normalize_role("viewer") == "reviewer"
        assert normalize_role("Viewer") == "reviewer"
        assert normalize_role("reviewer") == "reviewer"

    def test_case_and_whitespace(self):
        """Tokens are trimmed and lower-cased."""
        assert normalize_role("  EDITOR ") == "editor"
        assert normalize_role("Manager") == "manager"
        assert normalize_role("OWNER") == "owner"

    def test_enum_input(self):
        """Role enum members normalize to their value."""
        assert normalize_role(Role.MANAGER) == "manager"

    def test_empty_input(self):
        """None and blank strings have no role."""
        assert normalize_role(None) is None
        assert normalize_role("") is None
        assert normalize_role("   ") is None

    def test_unknown_passes_through(self):
        """Unrecognized tokens pass through lower-cased."""
        assert normalize_role("Custom") == "custom"

    def test_non_string_never_raises(self):
        """Normalization is total."""
        assert normalize_role(42) == "42"


class TestRanks:
    """Tests for rank comparison."""

    def test_rank_order(self):
        """reviewer < editor < manager < owner."""
        assert rank_of("reviewer") < rank_of("editor") < rank_of("manager") < rank_of("owner")

    def test_unknown_rank_is_zero(self):
        """Unknown and missing roles carry no rank."""
        assert rank_of("custom") == 0
        assert rank_of(None) == 0

    def test_at_least(self):
        """at_least compares against a minimum role."""
        assert at_least("owner", Role.MANAGER)
        assert at_least("manager", Role.MANAGER)
        assert not at_least("editor", Role.MANAGER)
        assert not at_least("custom", Role.REVIEWER)


class TestDelegatePermissions:
    """Tests for the legacy share-role mapping."""

    def test_reviewer_views_only(self):
        """Reviewer gets view only."""
        assert delegate_permissions("reviewer") == DelegatePermissions(view=True)

    def test_editor_create_follows_flag(self):
        """Editor create depends on the explicit flag."""
        assert not delegate_permissions("editor").create
        assert delegate_permissions("editor", can_create=True).create
        assert delegate_permissions("editor").edit

    def test_manager(self):
        """Manager gets everything except delete."""
        perms = delegate_permissions("Manager")
        assert perms.view and perms.edit and perms.move and perms.clone and perms.create
        assert not perms.delete

    def test_legacy_owner_share(self):
        """A legacy owner share maps to all permissions."""
        perms = delegate_permissions("owner")
        assert perms == DelegatePermissions(
            view=True, create=True, edit=True, move=True, clone=True, delete=True
        )

    def test_unknown_views_only(self):
        """Unknown roles default to view."""
        assert delegate_permissions("custom") == DelegatePermissions(view=True)
        assert delegate_permissions(None) == DelegatePermissions(view=True)
